"""Retrieval policy and pending-queue reconciliation."""

from .coordinator import CacheInfo, InventorySnapshot, SyncCoordinator, SyncReport

__all__ = [
    "CacheInfo",
    "InventorySnapshot",
    "SyncCoordinator",
    "SyncReport",
]
