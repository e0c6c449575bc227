from __future__ import annotations

from typing import Dict, Tuple

UNIT_LITRE = "L"
UNIT_MILLILITRE = "mL"
UNIT_GRAM = "g"
UNIT_KILOGRAM = "kg"
UNIT_COUNT = "units"

UNITS: Tuple[str, ...] = (
    UNIT_LITRE,
    UNIT_MILLILITRE,
    UNIT_GRAM,
    UNIT_KILOGRAM,
    UNIT_COUNT,
)

DEFAULT_UNIT = UNIT_LITRE

# Case-insensitive lookup back to the canonical spelling ("ml" -> "mL").
UNIT_ALIASES: Dict[str, str] = {u.lower(): u for u in UNITS}

STORAGE_LOCATIONS: Tuple[str, ...] = (
    "Storage Room A",
    "Storage Room B",
    "Refrigerator 1",
    "Cabinet 1",
)

# Picked when none of the predefined locations fit; the caller supplies free text.
OTHER_LOCATION = "Other"

WIRE_FIELDS: Tuple[str, ...] = (
    "product_name",
    "cas_number",
    "manufacturer_name",
    "current_stock_quantity",
    "unit",
    "category",
    "storage_location",
    "expiry_date",
)

REQUIRED_STRING_FIELDS: Tuple[str, ...] = (
    "product_name",
    "cas_number",
    "manufacturer_name",
)
