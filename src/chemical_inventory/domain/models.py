from __future__ import annotations

import hashlib
import json
import math
import uuid
from dataclasses import InitVar, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .constants import REQUIRED_STRING_FIELDS, UNIT_ALIASES, UNITS

# Queue entries written without a timestamp are read back with this fixed instant.
LEGACY_QUEUED_AT = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string; naive values are read as local time."""
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def normalize_unit(unit: str) -> str:
    canonical = UNIT_ALIASES.get(str(unit).strip().lower())
    if canonical is None:
        raise ValueError(f"unit must be one of {', '.join(UNITS)}; got {unit!r}")
    return canonical


@dataclass(frozen=True)
class ChemicalRecord:
    product_name: str
    cas_number: str
    manufacturer_name: str
    current_stock_quantity: float
    unit: str
    category: Optional[str] = None
    storage_location: Optional[str] = None
    expiry_date: Optional[str] = None
    # False only when reading back legacy local data, where blank required
    # strings were stored by older versions.
    strict: InitVar[bool] = True

    def __post_init__(self, strict: bool) -> None:
        for name in REQUIRED_STRING_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, str):
                raise ValueError(f"{name} must be a string; got {type(value).__name__}")
            value = value.strip()
            if strict and not value:
                raise ValueError(f"{name} must not be blank")
            object.__setattr__(self, name, value)

        for name in ("category", "storage_location", "expiry_date"):
            value = getattr(self, name)
            if isinstance(value, str):
                object.__setattr__(self, name, value.strip() or None)

        qty = float(self.current_stock_quantity)
        if not math.isfinite(qty):
            raise ValueError(f"current_stock_quantity must be a finite number; got {qty}")
        if qty < 0:
            raise ValueError(f"current_stock_quantity must be >= 0; got {qty}")
        object.__setattr__(self, "current_stock_quantity", qty)
        object.__setattr__(self, "unit", normalize_unit(self.unit))

    def to_json(self) -> Dict[str, Any]:
        return {
            "product_name": self.product_name,
            "cas_number": self.cas_number,
            "manufacturer_name": self.manufacturer_name,
            "current_stock_quantity": self.current_stock_quantity,
            "unit": self.unit,
            "category": self.category,
            "storage_location": self.storage_location,
            "expiry_date": self.expiry_date,
        }

    @classmethod
    def from_json(cls, data: Any, *, strict: bool = True) -> "ChemicalRecord":
        from .parser import decode_record

        return decode_record(data, strict=strict)


@dataclass
class CacheEntry:
    """Last snapshot fetched from the remote source and the instant it was fetched."""

    data: List[ChemicalRecord]
    timestamp: datetime

    def age(self, now: datetime) -> float:
        """Seconds elapsed since the snapshot was fetched."""
        return (now - self.timestamp).total_seconds()


@dataclass
class PendingItem:
    """A locally created record waiting to be accepted by the remote source.

    ``item_id`` is generated on the client and doubles as the idempotency key
    on submission, so resubmitting after a partial failure is safe.
    """

    record: ChemicalRecord
    queued_at: datetime
    item_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.item_id,
            "chemical": self.record.to_json(),
            "timestamp": format_timestamp(self.queued_at),
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PendingItem":
        chemical = data.get("chemical") or {}
        timestamp = data.get("timestamp")
        item_id = data.get("id") or legacy_item_id(chemical, timestamp)
        return cls(
            record=ChemicalRecord.from_json(chemical, strict=False),
            queued_at=parse_timestamp(timestamp) if timestamp else LEGACY_QUEUED_AT,
            item_id=str(item_id),
        )


def legacy_item_id(chemical: Dict[str, Any], timestamp: Optional[str]) -> str:
    """Deterministic id for queue entries written before ids were stored."""
    blob = json.dumps({"chemical": chemical, "timestamp": timestamp}, sort_keys=True)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:32]
