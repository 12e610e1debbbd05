"""
Storage abstraction layer.

TransactionStore ABC: append-only trade and cash-adjustment log, scoped per
account. JournalStore ABC: the externally-owned journal entries a trade may
link back to. In-memory and SQLite implementations live beside this module.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from spotledger.records import CashAdjustment, JournalEntry, Trade


class TransactionStore(ABC):
    """
    Durable append-only log of Trade and CashAdjustment records.
    Every query is scoped by account_id; records of other accounts are invisible.
    Implementations: InMemoryTransactionStore, SqliteTransactionStore.
    """

    @abstractmethod
    def append_trade(self, trade: Trade) -> None:
        """Persist a trade. Either the whole record is stored or nothing is."""
        ...

    @abstractmethod
    def append_cash_adjustment(self, adjustment: CashAdjustment) -> None:
        ...

    @abstractmethod
    def get_trade(self, account_id: str, trade_id: str) -> Trade | None:
        """Return the trade if it exists and belongs to account_id."""
        ...

    @abstractmethod
    def get_cash_adjustment(self, account_id: str, adjustment_id: str) -> CashAdjustment | None:
        ...

    @abstractmethod
    def list_trades(self, account_id: str, symbol: str | None = None) -> list[Trade]:
        """Trades for the account (optionally one symbol), ascending trade_at then insertion order."""
        ...

    @abstractmethod
    def list_cash_adjustments(self, account_id: str) -> list[CashAdjustment]:
        ...

    @abstractmethod
    def delete_trade(self, account_id: str, trade_id: str) -> bool:
        """Delete a trade. False if it was not there."""
        ...

    @abstractmethod
    def delete_cash_adjustment(self, account_id: str, adjustment_id: str) -> bool:
        ...


class JournalStore(ABC):
    """Journal entries a trade may have been spawned from."""

    @abstractmethod
    def add(self, entry: JournalEntry) -> None:
        ...

    @abstractmethod
    def find_by_id(self, account_id: str, entry_id: str) -> JournalEntry | None:
        ...

    @abstractmethod
    def delete_by_id(self, account_id: str, entry_id: str) -> bool:
        """Delete an entry. Returns False, without raising, when it is already gone."""
        ...
