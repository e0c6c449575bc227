"""Entity model for inventory records and their wire/storage representation."""

from .constants import DEFAULT_UNIT, OTHER_LOCATION, STORAGE_LOCATIONS, UNITS
from .models import CacheEntry, ChemicalRecord, PendingItem
from .parser import decode_envelope, decode_record

__all__ = [
    "CacheEntry",
    "ChemicalRecord",
    "PendingItem",
    "decode_envelope",
    "decode_record",
    "UNITS",
    "DEFAULT_UNIT",
    "STORAGE_LOCATIONS",
    "OTHER_LOCATION",
]
