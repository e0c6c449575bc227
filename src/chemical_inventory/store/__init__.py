"""Durable local store: cached snapshot, pending queue, and settings."""

from .db import LocalStore, CACHE_VALIDITY

__all__ = [
    "LocalStore",
    "CACHE_VALIDITY",
]
