"""Cache/network retrieval policies and draining of the pending queue."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from ..domain.models import ChemicalRecord, PendingItem, utc_now
from ..errors import NetworkError, NoDataAvailable, ParseError, StorageError
from ..logging import get_logger
from ..remote.client import InventoryClient, SubmitOutcome
from ..store.db import CACHE_VALIDITY, LocalStore


LOG = get_logger("sync-coordinator")

SOURCE_REMOTE = "remote"
SOURCE_CACHE = "cache"


@dataclass
class InventorySnapshot:
    records: List[ChemicalRecord]
    source: str
    fetched_at: Optional[datetime]
    stale: bool = False

    @property
    def from_cache(self) -> bool:
        return self.source == SOURCE_CACHE


@dataclass
class SyncReport:
    submitted: int = 0
    outcomes: List[SubmitOutcome] = field(default_factory=list)
    remaining: int = 0

    @property
    def success(self) -> bool:
        return all(o.accepted for o in self.outcomes)

    @property
    def accepted(self) -> int:
        return sum(1 for o in self.outcomes if o.accepted)


@dataclass
class CacheInfo:
    has_cache: bool
    cache_timestamp: Optional[datetime]
    is_cache_valid: bool
    last_sync: Optional[datetime]
    pending_count: int

    def as_dict(self) -> dict:
        return {
            "has_cache": self.has_cache,
            "cache_timestamp": self.cache_timestamp.isoformat() if self.cache_timestamp else None,
            "is_cache_valid": self.is_cache_valid,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "pending_sync_count": self.pending_count,
        }


class SyncCoordinator:
    """Decides whether to serve cached or fetched data and drains pending writes.

    The store and client are injected by the composition root; the coordinator
    holds no global state. ``fetch_chemicals`` and ``sync_pending_chemicals``
    each run under their own lock so concurrent callers cannot interleave
    their writes to the store.
    """

    def __init__(
        self,
        store: LocalStore,
        client: InventoryClient,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.client = client
        self._clock = clock
        self._fetch_lock = threading.Lock()
        self._sync_lock = threading.Lock()
        self._refresh_guard = threading.Lock()
        self._refresh_thread: Optional[threading.Thread] = None

    # ---------- retrieval ----------
    def fetch_chemicals(self) -> InventorySnapshot:
        """Network first; fall back to the cached snapshot, stale or not."""
        with self._fetch_lock:
            try:
                records = self.client.fetch_all()
            except (NetworkError, ParseError) as e:
                LOG.warning(f"Remote fetch failed ({e}); falling back to local cache")
                return self._cached_or_raise(e)

            now = self._clock()
            try:
                entry = self.store.put_cache(records)
                self.store.set_last_sync_time(now)
                fetched_at = entry.timestamp
            except StorageError as e:
                LOG.error(f"Could not write fetched chemicals through to the local store: {e}")
                fetched_at = now
            return InventorySnapshot(records=list(records), source=SOURCE_REMOTE, fetched_at=fetched_at)

    def _cached_or_raise(self, cause: Exception) -> InventorySnapshot:
        try:
            entry = self.store.get_cache()
        except StorageError as e:
            LOG.error(f"Local cache unreadable after remote failure: {e}")
            raise NoDataAvailable("no connection and the local cache could not be read") from cause
        if entry is None or not entry.data:
            raise NoDataAvailable("no connection and no cached data available") from cause
        stale = self._clock() - entry.timestamp >= CACHE_VALIDITY
        if stale:
            LOG.warning(f"Serving stale cache from {entry.timestamp.isoformat()}")
        else:
            LOG.info(f"Serving cached snapshot from {entry.timestamp.isoformat()}")
        return InventorySnapshot(records=entry.data, source=SOURCE_CACHE, fetched_at=entry.timestamp, stale=stale)

    def fetch_chemicals_with_cache(self) -> InventorySnapshot:
        """Serve a valid cache immediately and refresh it in the background."""
        entry = None
        try:
            if self.store.is_cache_valid():
                entry = self.store.get_cache()
        except StorageError as e:
            LOG.warning(f"Cache check failed ({e}); going to the network")
        if entry is None:
            return self.fetch_chemicals()

        self._start_background_refresh()
        return InventorySnapshot(records=entry.data, source=SOURCE_CACHE, fetched_at=entry.timestamp)

    def _start_background_refresh(self) -> None:
        with self._refresh_guard:
            if self._refresh_thread is not None and self._refresh_thread.is_alive():
                LOG.debug("Background refresh already running")
                return
            self._refresh_thread = threading.Thread(
                target=self._background_refresh,
                name="chemical-cache-refresh",
                daemon=True,
            )
            self._refresh_thread.start()

    def _background_refresh(self) -> None:
        try:
            snapshot = self.fetch_chemicals()
        except Exception as e:
            LOG.warning(f"Background refresh failed: {e}")
            return
        if snapshot.source == SOURCE_REMOTE:
            LOG.info(f"Background refresh stored {len(snapshot.records)} record(s)")
        else:
            LOG.info("Background refresh could not reach the remote source; cache unchanged")

    def wait_for_refresh(self, timeout: Optional[float] = None) -> bool:
        """Join the running background refresh. Returns False if it is still running."""
        thread = self._refresh_thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    # ---------- pending writes ----------
    def add_chemical(self, record: ChemicalRecord) -> PendingItem:
        return self.store.enqueue_pending(record)

    def sync_pending_chemicals(self) -> SyncReport:
        """Submit the queue and drop only the items the remote source accepted."""
        with self._sync_lock:
            items = self.store.list_pending()
            if not items:
                LOG.info("No pending items to sync")
                return SyncReport()

            LOG.info(f"Syncing {len(items)} pending item(s)")
            result = self.client.submit_pending(items)
            accepted = result.accepted_ids
            if accepted:
                self.store.remove_pending(accepted)
            report = SyncReport(
                submitted=len(items),
                outcomes=list(result.outcomes),
                remaining=len(items) - len(accepted),
            )
            if report.success:
                self.store.set_last_sync_time(self._clock())
                LOG.info("Pending queue drained")
            else:
                LOG.warning(f"{report.remaining} pending item(s) left for retry")
            return report

    # ---------- status ----------
    def cache_info(self) -> CacheInfo:
        timestamp = self.store.get_cache_timestamp()
        return CacheInfo(
            has_cache=timestamp is not None,
            cache_timestamp=timestamp,
            is_cache_valid=self.store.is_cache_valid(),
            last_sync=self.store.get_last_sync_time(),
            pending_count=self.store.pending_count(),
        )

    def clear_cache(self) -> None:
        self.store.clear_all_cache()

    def is_online(self) -> bool:
        return self.client.check_connectivity()
