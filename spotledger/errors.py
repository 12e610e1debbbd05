"""
Error taxonomy for ledger mutations.

Business-rule failures derive from LedgerError and are recoverable by the
caller. StoreError signals an I/O failure in the backing store and is not a
validation outcome.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for business-rule rejections."""

    reason = "rejected"


class InsufficientAsset(LedgerError):
    """Sell quantity exceeds the held position beyond tolerance."""

    reason = "insufficient_asset"

    def __init__(self, symbol: str, requested: float, available: float) -> None:
        self.symbol = symbol
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {symbol}: requested {requested}, held {available}"
        )


class InsufficientCash(LedgerError):
    """Withdrawal or purchase exceeds the cash balance beyond tolerance."""

    reason = "insufficient_cash"

    def __init__(self, requested: float, available: float) -> None:
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient cash: requested {requested:.8f}, balance {available:.8f}"
        )


class NotFound(LedgerError):
    """Mutation target is absent or belongs to another account."""

    reason = "not_found"

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id!r} not found")


class InvalidInput(LedgerError, ValueError):
    """Non-positive quantity, price or amount; negative fee; bad symbol."""

    reason = "invalid_input"


class StoreError(Exception):
    """Backing store failed (I/O, corruption). Not a business-rule rejection."""
