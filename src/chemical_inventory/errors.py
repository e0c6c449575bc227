"""Exception hierarchy shared by the store, the remote client and the coordinator."""

from __future__ import annotations

from typing import Optional


class ChemicalInventoryError(Exception):
    pass


class NetworkError(ChemicalInventoryError):
    """Remote endpoint unreachable, timed out, or answered with a non-200 status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ParseError(ChemicalInventoryError):
    """Response envelope or record did not match the expected schema."""


class NoDataAvailable(ChemicalInventoryError):
    """The network read failed and there is no usable cached snapshot."""


class StorageError(ChemicalInventoryError):
    """Local persistence failed; carries the region/key that was involved."""

    def __init__(self, message: str, *, region: Optional[str] = None, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.region = region
        self.key = key
