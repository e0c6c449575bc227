from .client import InventoryClient, SubmitOutcome, SubmitReport

__all__ = [
    "InventoryClient",
    "SubmitOutcome",
    "SubmitReport",
]
