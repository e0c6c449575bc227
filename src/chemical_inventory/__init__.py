"""Chemical inventory – offline cache and sync core.

This package keeps a last-known-good snapshot of the remote inventory in a
local SQLite store, queues records entered while offline, and decides when to
serve cached data and when to reconcile with the remote endpoint.
"""

__all__ = [
    "config",
    "errors",
    "logging",
    "paths",
]
