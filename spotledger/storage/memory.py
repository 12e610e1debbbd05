"""
In-memory stores: same interface as the SQLite stores, no persistence.

Used for tests and short-lived sessions. Internal lists are guarded by a lock
so concurrent mutation requests see consistent snapshots.
"""

from __future__ import annotations

import threading

from spotledger.errors import StoreError
from spotledger.records import CashAdjustment, JournalEntry, Trade
from spotledger.storage.base import JournalStore, TransactionStore


class InMemoryTransactionStore(TransactionStore):
    """Append-only trade and cash log held in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._trades: list[Trade] = []
        self._adjustments: list[CashAdjustment] = []

    def append_trade(self, trade: Trade) -> None:
        with self._lock:
            if any(t.id == trade.id for t in self._trades):
                raise StoreError(f"duplicate trade id {trade.id!r}")
            self._trades.append(trade)

    def append_cash_adjustment(self, adjustment: CashAdjustment) -> None:
        with self._lock:
            if any(a.id == adjustment.id for a in self._adjustments):
                raise StoreError(f"duplicate cash adjustment id {adjustment.id!r}")
            self._adjustments.append(adjustment)

    def get_trade(self, account_id: str, trade_id: str) -> Trade | None:
        with self._lock:
            for t in self._trades:
                if t.id == trade_id and t.account_id == account_id:
                    return t
        return None

    def get_cash_adjustment(self, account_id: str, adjustment_id: str) -> CashAdjustment | None:
        with self._lock:
            for a in self._adjustments:
                if a.id == adjustment_id and a.account_id == account_id:
                    return a
        return None

    def list_trades(self, account_id: str, symbol: str | None = None) -> list[Trade]:
        with self._lock:
            rows = [
                t for t in self._trades
                if t.account_id == account_id and (symbol is None or t.symbol == symbol)
            ]
        return sorted(rows, key=lambda t: t.trade_at)

    def list_cash_adjustments(self, account_id: str) -> list[CashAdjustment]:
        with self._lock:
            rows = [a for a in self._adjustments if a.account_id == account_id]
        return sorted(rows, key=lambda a: a.trade_at)

    def delete_trade(self, account_id: str, trade_id: str) -> bool:
        with self._lock:
            for i, t in enumerate(self._trades):
                if t.id == trade_id and t.account_id == account_id:
                    del self._trades[i]
                    return True
        return False

    def delete_cash_adjustment(self, account_id: str, adjustment_id: str) -> bool:
        with self._lock:
            for i, a in enumerate(self._adjustments):
                if a.id == adjustment_id and a.account_id == account_id:
                    del self._adjustments[i]
                    return True
        return False


class InMemoryJournalStore(JournalStore):
    """Journal entries keyed by id."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, JournalEntry] = {}

    def add(self, entry: JournalEntry) -> None:
        with self._lock:
            self._entries[entry.id] = entry

    def find_by_id(self, account_id: str, entry_id: str) -> JournalEntry | None:
        with self._lock:
            entry = self._entries.get(entry_id)
        if entry is None or entry.account_id != account_id:
            return None
        return entry

    def delete_by_id(self, account_id: str, entry_id: str) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.account_id != account_id:
                return False
            del self._entries[entry_id]
            return True
