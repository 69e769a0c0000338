"""
Error kinds raised by the ledger.

All of them subclass ValueError so callers that only show ``str(e)`` to the
user keep working.
"""

from __future__ import annotations


class LedgerError(ValueError):
    """Base class for every ledger failure."""


class NotFound(LedgerError):
    def __init__(self, what: str, key: str):
        super().__init__(f"{what} not found: {key}")
        self.what = what
        self.key = key


class InsufficientStock(LedgerError):
    def __init__(self, product: str, available: float, requested: float):
        super().__init__(
            f"Insufficient stock for {product}. "
            f"Available: {available:g}kg, Requested: {requested:g}kg"
        )
        self.product = product
        self.available = float(available)
        self.requested = float(requested)


class InsufficientPieces(LedgerError):
    def __init__(self, product: str, available: int, requested: int):
        super().__init__(
            f"Insufficient pieces for {product}. "
            f"Available: {int(available)} pieces, Requested: {int(requested)} pieces"
        )
        self.product = product
        self.available = int(available)
        self.requested = int(requested)


class StorageFailure(LedgerError):
    def __init__(self, operation: str, detail: str):
        super().__init__(f"Storage failure during {operation}: {detail}")
        self.operation = operation
        self.detail = detail
