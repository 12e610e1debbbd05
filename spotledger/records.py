"""
Ledger records: trades, cash adjustments, and the journal entries they link to.

Immutable. Records are only ever appended or deleted; positions and cash are
derived from them by the aggregators in spotledger.portfolio.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

CASH_SYMBOL = "CASH"

# Back-reference tag written into a trade note, e.g. "[JE:abc123]".
JOURNAL_TAG_RE = re.compile(r"^\[JE:(?P<id>[^\]]+)\]$")


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


class CashKind(Enum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"


def new_id(prefix: str) -> str:
    """Generate a unique record id with a kind prefix."""
    return f"{prefix}-{uuid.uuid4().hex}"


def normalize_symbol(symbol: str) -> str:
    """Trimmed, upper-case symbol. Raises ValueError for empty input."""
    sym = (symbol or "").strip().upper()
    if not sym:
        raise ValueError("symbol must not be empty")
    return sym


def journal_tag(journal_entry_id: str) -> str:
    return f"[JE:{journal_entry_id}]"


def parse_journal_tag(note: str | None) -> str | None:
    """Return the journal entry id encoded in note, or None if untagged."""
    if not note:
        return None
    m = JOURNAL_TAG_RE.match(note.strip())
    return m.group("id") if m else None


@dataclass(frozen=True)
class Trade:
    """A realized spot buy or sell. Fee settles in cash; it is not part of cost basis."""

    id: str
    account_id: str
    symbol: str
    side: Side
    quantity: float
    price_usd: float
    trade_at: datetime
    fee_usd: float = 0.0
    note: str | None = None
    journal_entry_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.side, Side):
            object.__setattr__(self, "side", Side(str(self.side).lower()))
        if not isinstance(self.trade_at, datetime):
            object.__setattr__(self, "trade_at", datetime.fromisoformat(str(self.trade_at)))

    @property
    def gross_usd(self) -> float:
        return self.quantity * self.price_usd

    @property
    def linked_journal_entry_id(self) -> str | None:
        """Explicit reference if set, else the id carried by a [JE:<id>] note."""
        return self.journal_entry_id or parse_journal_tag(self.note)


@dataclass(frozen=True)
class CashAdjustment:
    """A USD deposit into or withdrawal from the account's cash balance."""

    id: str
    account_id: str
    amount_usd: float
    kind: CashKind
    trade_at: datetime
    note: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, CashKind):
            object.__setattr__(self, "kind", CashKind(str(self.kind).lower()))
        if not isinstance(self.trade_at, datetime):
            object.__setattr__(self, "trade_at", datetime.fromisoformat(str(self.trade_at)))


@dataclass(frozen=True)
class JournalEntry:
    """
    A planned or executed trade record owned by the journal, not the ledger.
    The ledger only reads it to spawn a trade and deletes it on cascade.
    """

    id: str
    account_id: str
    asset: str
    side: Side
    amount: float
    entry_price: float
    status: str = "in_progress"
    exit_price: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.side, Side):
            object.__setattr__(self, "side", Side(str(self.side).lower()))
