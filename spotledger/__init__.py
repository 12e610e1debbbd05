"""
spotledger: spot portfolio ledger and position engine.

Holdings and cash are derived from an append-only trade and cash log; nothing
is stored as a running balance. Mutations are validated against the derived
state before they are appended.
"""

__version__ = "0.1.0"

from spotledger.config import LedgerConfig
from spotledger.errors import (
    InsufficientAsset,
    InsufficientCash,
    InvalidInput,
    LedgerError,
    NotFound,
    StoreError,
)
from spotledger.ledger import PortfolioLedger, RejectedMutation
from spotledger.linkage import LinkageResolver
from spotledger.portfolio import (
    PortfolioSnapshot,
    Position,
    compute_cash_balance,
    compute_position,
    compute_positions,
)
from spotledger.records import CashAdjustment, CashKind, JournalEntry, Side, Trade
from spotledger.validation import ValidationGate

__all__ = [
    "CashAdjustment",
    "CashKind",
    "InsufficientAsset",
    "InsufficientCash",
    "InvalidInput",
    "JournalEntry",
    "LedgerConfig",
    "LedgerError",
    "LinkageResolver",
    "NotFound",
    "PortfolioLedger",
    "PortfolioSnapshot",
    "Position",
    "RejectedMutation",
    "Side",
    "StoreError",
    "Trade",
    "ValidationGate",
    "compute_cash_balance",
    "compute_position",
    "compute_positions",
]
