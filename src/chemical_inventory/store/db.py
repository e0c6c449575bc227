from __future__ import annotations

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Iterator, List, Optional

from ..domain.models import (
    CacheEntry,
    ChemicalRecord,
    PendingItem,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from ..errors import ParseError, StorageError
from ..logging import get_logger
from ..paths import default_store_path


LOG = get_logger("store-db")

REGION_CACHE = "cache"
REGION_PENDING = "pending"
REGION_SETTINGS = "settings"

KEY_CACHED_CHEMICALS = "cached_chemicals"
KEY_PENDING_ITEMS = "pending_items"
KEY_DARK_MODE = "dark_mode"
KEY_LAST_SYNC = "last_sync"

CACHE_VALIDITY = timedelta(hours=24)

_MISSING = object()


SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS kv (
  region      TEXT NOT NULL CHECK (region IN ('{REGION_CACHE}','{REGION_PENDING}','{REGION_SETTINGS}')),
  key         TEXT NOT NULL,
  value       TEXT NOT NULL,              -- JSON
  updated_at  TEXT DEFAULT (datetime('now')),
  PRIMARY KEY (region, key)
);
"""


class LocalStore:
    """SQLite-backed key-value store with three named regions.

    - ``cache``: one snapshot under ``cached_chemicals``.
    - ``pending``: the FIFO queue of unsynced records under ``pending_items``.
    - ``settings``: small preferences (``dark_mode``, ``last_sync``).

    Each region has its own lock so a long queue rewrite never blocks a cache
    read. Every write is committed before the method returns. Failures are
    logged with region/key context and raised as StorageError.
    """

    def __init__(self, db_path: Optional[str] = None, *, clock: Callable[[], datetime] = utc_now) -> None:
        self.db_path = os.path.abspath(db_path) if db_path else default_store_path()
        self._clock = clock
        self._locks = {
            REGION_CACHE: threading.Lock(),
            REGION_PENDING: threading.Lock(),
            REGION_SETTINGS: threading.Lock(),
        }
        self._closed = False
        folder = os.path.dirname(self.db_path)
        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as e:
            LOG.error(f"Cannot create store folder {folder}: {e}")
            raise StorageError(f"cannot create store folder {folder}: {e}") from e
        LOG.info(f"Local store path: {self.db_path}")
        self._ensure_schema()

    # ---------- plumbing ----------
    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        if self._closed:
            raise StorageError("local store is closed")
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        try:
            with self.connect() as conn:
                cur = conn.cursor()
                try:
                    cur.execute("PRAGMA journal_mode=WAL;")
                    cur.execute("PRAGMA synchronous=NORMAL;")
                except sqlite3.OperationalError:
                    # Non-fatal; some filesystems refuse WAL
                    pass
                cur.executescript(SCHEMA_SQL)
                conn.commit()
        except sqlite3.Error as e:
            LOG.error(f"Failed to initialize local store schema at {self.db_path}: {e}")
            raise StorageError(f"cannot initialize local store: {e}") from e
        LOG.debug("Local store schema ensured.")

    def _read(self, region: str, key: str, default: Any = None) -> Any:
        try:
            with self.connect() as conn:
                row = conn.execute(
                    "SELECT value FROM kv WHERE region=? AND key=?", (region, key)
                ).fetchone()
        except sqlite3.Error as e:
            LOG.error(f"Read failed for {region}/{key}: {e}")
            raise StorageError(f"read failed: {e}", region=region, key=key) from e
        if row is None:
            return default
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            LOG.error(f"Stored value for {region}/{key} is not valid JSON: {e}")
            raise StorageError(f"corrupt stored value: {e}", region=region, key=key) from e

    def _write(self, region: str, key: str, value: Any) -> None:
        blob = json.dumps(value, ensure_ascii=False)
        try:
            with self.connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv (region, key, value) VALUES (?, ?, ?)
                    ON CONFLICT(region, key) DO UPDATE SET
                        value=excluded.value,
                        updated_at=datetime('now');
                    """,
                    (region, key, blob),
                )
                conn.commit()
        except sqlite3.Error as e:
            LOG.error(f"Write failed for {region}/{key}: {e}")
            raise StorageError(f"write failed: {e}", region=region, key=key) from e

    def _delete_region(self, region: str) -> None:
        try:
            with self.connect() as conn:
                conn.execute("DELETE FROM kv WHERE region=?", (region,))
                conn.commit()
        except sqlite3.Error as e:
            LOG.error(f"Clearing region {region} failed: {e}")
            raise StorageError(f"clear failed: {e}", region=region) from e

    # ---------- cache ----------
    def put_cache(self, records: Iterable[ChemicalRecord]) -> CacheEntry:
        """Replace the cached snapshot; the timestamp is taken from the clock."""
        entry = CacheEntry(data=list(records), timestamp=self._clock())
        payload = {
            "data": [r.to_json() for r in entry.data],
            "timestamp": format_timestamp(entry.timestamp),
        }
        with self._locks[REGION_CACHE]:
            self._write(REGION_CACHE, KEY_CACHED_CHEMICALS, payload)
        LOG.info(f"Cached {len(entry.data)} chemical record(s) at {payload['timestamp']}")
        return entry

    def get_cache(self) -> Optional[CacheEntry]:
        with self._locks[REGION_CACHE]:
            raw = self._read(REGION_CACHE, KEY_CACHED_CHEMICALS)
        if raw is None:
            return None
        try:
            data = [ChemicalRecord.from_json(r, strict=False) for r in raw.get("data") or []]
            timestamp = parse_timestamp(raw["timestamp"])
        except (AttributeError, KeyError, TypeError, ValueError, ParseError) as e:
            LOG.error(f"Cached snapshot could not be decoded: {e}")
            raise StorageError(
                f"corrupt cache entry: {e}", region=REGION_CACHE, key=KEY_CACHED_CHEMICALS
            ) from e
        return CacheEntry(data=data, timestamp=timestamp)

    def get_cache_timestamp(self) -> Optional[datetime]:
        entry = self.get_cache()
        return entry.timestamp if entry else None

    def is_cache_valid(self) -> bool:
        entry = self.get_cache()
        if entry is None:
            return False
        return self._clock() - entry.timestamp < CACHE_VALIDITY

    # ---------- pending queue ----------
    def _load_pending(self) -> List[PendingItem]:
        raw = self._read(REGION_PENDING, KEY_PENDING_ITEMS, default=[])
        if not isinstance(raw, list):
            LOG.error(f"Pending queue is a {type(raw).__name__}, expected a list")
            raise StorageError("corrupt pending queue", region=REGION_PENDING, key=KEY_PENDING_ITEMS)
        try:
            return [PendingItem.from_json(item) for item in raw]
        except (AttributeError, TypeError, ValueError, ParseError) as e:
            LOG.error(f"Pending queue could not be decoded: {e}")
            raise StorageError(
                f"corrupt pending queue: {e}", region=REGION_PENDING, key=KEY_PENDING_ITEMS
            ) from e

    def _save_pending(self, items: List[PendingItem]) -> None:
        self._write(REGION_PENDING, KEY_PENDING_ITEMS, [i.to_json() for i in items])

    def enqueue_pending(self, record: ChemicalRecord) -> PendingItem:
        item = PendingItem(record=record, queued_at=self._clock())
        with self._locks[REGION_PENDING]:
            items = self._load_pending()
            items.append(item)
            self._save_pending(items)
        LOG.info(f"Queued '{record.product_name}' for sync (id={item.item_id}, queue size={len(items)})")
        return item

    def list_pending(self) -> List[PendingItem]:
        with self._locks[REGION_PENDING]:
            return self._load_pending()

    def pending_count(self) -> int:
        return len(self.list_pending())

    def remove_pending(self, item_ids: Iterable[str]) -> int:
        """Drop the given items from the queue; returns how many were removed."""
        drop = set(item_ids)
        if not drop:
            return 0
        with self._locks[REGION_PENDING]:
            items = self._load_pending()
            kept = [i for i in items if i.item_id not in drop]
            removed = len(items) - len(kept)
            if removed:
                self._save_pending(kept)
        LOG.info(f"Removed {removed} acknowledged item(s) from the pending queue; {len(kept)} left")
        return removed

    def clear_pending(self) -> None:
        with self._locks[REGION_PENDING]:
            self._save_pending([])
        LOG.info("Pending queue cleared")

    # ---------- settings ----------
    def get_setting(self, key: str, default: Any = None) -> Any:
        with self._locks[REGION_SETTINGS]:
            value = self._read(REGION_SETTINGS, key, default=_MISSING)
        return default if value is _MISSING else value

    def put_setting(self, key: str, value: Any) -> None:
        with self._locks[REGION_SETTINGS]:
            self._write(REGION_SETTINGS, key, value)

    def get_dark_mode(self) -> bool:
        return bool(self.get_setting(KEY_DARK_MODE, False))

    def set_dark_mode(self, enabled: bool) -> None:
        self.put_setting(KEY_DARK_MODE, bool(enabled))

    def get_last_sync_time(self) -> Optional[datetime]:
        value = self.get_setting(KEY_LAST_SYNC)
        if not value:
            return None
        try:
            return parse_timestamp(value)
        except (TypeError, ValueError):
            LOG.warning(f"Ignoring unparseable last_sync value: {value!r}")
            return None

    def set_last_sync_time(self, when: datetime) -> None:
        self.put_setting(KEY_LAST_SYNC, format_timestamp(when))

    # ---------- cleanup ----------
    def clear_all_cache(self) -> None:
        """Remove the cached snapshot and the pending queue; settings survive."""
        with self._locks[REGION_CACHE]:
            self._delete_region(REGION_CACHE)
        with self._locks[REGION_PENDING]:
            self._delete_region(REGION_PENDING)
        LOG.info("Cleared cached snapshot and pending queue")

    def close(self) -> None:
        self._closed = True
        LOG.debug("Local store closed")
