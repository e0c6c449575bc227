from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

from ..errors import ParseError
from ..logging import get_logger
from .constants import DEFAULT_UNIT, REQUIRED_STRING_FIELDS, UNIT_ALIASES
from .models import ChemicalRecord


LOG = get_logger("domain-parser")


def _norm_s(s: Any) -> Optional[str]:
    return s.strip() if isinstance(s, str) and s.strip() else None


def _quantity(v: Any, *, strict: bool) -> float:
    if isinstance(v, bool):
        raise ParseError("current_stock_quantity must be a number, not a boolean")
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str) and v.strip():
        try:
            return float(v.strip().replace(",", "."))
        except ValueError:
            raise ParseError(f"invalid current_stock_quantity: {v!r}")
    if v is None and not strict:
        return 0.0
    raise ParseError("current_stock_quantity required")


def _optional(data: Dict[str, Any], key: str, *, strict: bool) -> Optional[str]:
    v = data.get(key)
    if v is None:
        return None
    if not isinstance(v, str):
        if strict:
            raise ParseError(f"{key} must be a string or null")
        v = str(v)
    return _norm_s(v)


def decode_record(data: Any, *, strict: bool = True) -> ChemicalRecord:
    """Decode one snake_case wire object into a ChemicalRecord.

    Strict mode (remote responses) fails closed: missing or blank required
    strings, a missing or negative quantity, or an unknown unit raise
    ParseError. Lenient mode keeps the historical defaults (empty strings,
    quantity 0, unit "L") for data already sitting in the local store.
    """
    if not isinstance(data, dict):
        raise ParseError("chemical must be a JSON object")

    strings: Dict[str, str] = {}
    for key in REQUIRED_STRING_FIELDS:
        value = _norm_s(data.get(key))
        if value is None:
            if strict:
                raise ParseError(f"{key} required")
            value = ""
        strings[key] = value

    qty = _quantity(data.get("current_stock_quantity"), strict=strict)
    if not math.isfinite(qty):
        if strict:
            raise ParseError(f"current_stock_quantity must be a finite number; got {qty}")
        LOG.warning(f"Stored record has non-finite quantity {qty}; reading it as 0")
        qty = 0.0
    if qty < 0:
        raise ParseError(f"current_stock_quantity must be >= 0; got {qty}")

    unit = _norm_s(data.get("unit"))
    if unit is None:
        if strict:
            raise ParseError("unit required")
        unit = DEFAULT_UNIT
    elif unit.lower() not in UNIT_ALIASES:
        if strict:
            raise ParseError(f"unknown unit: {unit!r}")
        LOG.warning(f"Stored record has unknown unit {unit!r}; reading it as {DEFAULT_UNIT}")
        unit = DEFAULT_UNIT

    try:
        return ChemicalRecord(
            product_name=strings["product_name"],
            cas_number=strings["cas_number"],
            manufacturer_name=strings["manufacturer_name"],
            current_stock_quantity=qty,
            unit=unit,
            category=_optional(data, "category", strict=strict),
            storage_location=_optional(data, "storage_location", strict=strict),
            expiry_date=_optional(data, "expiry_date", strict=strict),
            strict=strict,
        )
    except ValueError as e:
        raise ParseError(str(e)) from e


def decode_envelope(payload: Any) -> List[ChemicalRecord]:
    """Decode ``{"record": {"chemicals": [...]}}`` into records, in order."""
    if not isinstance(payload, dict):
        raise ParseError("response body must be a JSON object")
    record = payload.get("record")
    if not isinstance(record, dict):
        raise ParseError("response.record must be an object")
    chemicals = record.get("chemicals")
    if not isinstance(chemicals, list):
        raise ParseError("response.record.chemicals must be a list")

    out: List[ChemicalRecord] = []
    for idx, raw in enumerate(chemicals):
        try:
            out.append(decode_record(raw, strict=True))
        except ParseError as e:
            raise ParseError(f"chemicals[{idx}]: {e}") from e
    LOG.debug(f"Decoded {len(out)} chemical record(s) from response envelope")
    return out
