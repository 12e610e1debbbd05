"""
Portfolio ledger: gated mutations and derived reads for spot accounts.

Every mutation runs validate → append while holding the account's lock, so two
requests for the same account cannot both pass against the same snapshot.
Reads fold the full log through the aggregators; nothing is cached.
Rejections raise a LedgerError and are also kept in a rejected-mutation log.
"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from spotledger.config import LedgerConfig
from spotledger.errors import InvalidInput, LedgerError, NotFound
from spotledger.linkage import LinkageResolver
from spotledger.portfolio import (
    PortfolioSnapshot,
    Position,
    adjustment_cash_effect,
    compute_cash_balance,
    compute_position,
    compute_positions,
    trade_cash_effect,
)
from spotledger.records import (
    CashAdjustment,
    CashKind,
    JournalEntry,
    Side,
    Trade,
    journal_tag,
    new_id,
)
from spotledger.storage import (
    InMemoryJournalStore,
    InMemoryTransactionStore,
    JournalStore,
    SqliteJournalStore,
    SqliteTransactionStore,
    TransactionStore,
)
from spotledger.validation import (
    ValidationGate,
    require_non_negative,
    require_positive,
    require_symbol,
)

logger = logging.getLogger(__name__)


@dataclass
class RejectedMutation:
    """One rejected mutation request, kept for debugging and reporting."""

    account_id: str
    action: str
    reason: str
    message: str
    timestamp: datetime


class AccountLocks:
    """
    Lazily created lock per account id. Different accounts never contend.

    Locks are held weakly: an account's lock lives while some caller holds or
    waits on it, so the table stays bounded by the accounts in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.RLock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def lock_for(self, account_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock


def _utc(ts: datetime | None) -> datetime:
    if ts is None:
        return datetime.now(timezone.utc)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class PortfolioLedger:
    """
    Spot holdings and cash for many accounts over one TransactionStore.
    Flow for a mutation: lock account → validate inputs → ValidationGate
    against derived state → append. Deletes cascade through LinkageResolver.
    """

    def __init__(
        self,
        store: TransactionStore | None = None,
        journal: JournalStore | None = None,
        *,
        config: LedgerConfig | None = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.store = store if store is not None else InMemoryTransactionStore()
        self.journal = journal if journal is not None else InMemoryJournalStore()
        self.gate = ValidationGate(self.store, epsilon=self.config.epsilon)
        self.linkage = LinkageResolver(
            self.store,
            self.journal,
            propagate_cascade_errors=self.config.propagate_cascade_errors,
        )
        self._locks = AccountLocks()
        self._rejected_log: list[RejectedMutation] = []
        self._rejected_guard = threading.Lock()

    @classmethod
    def from_config(cls, config: LedgerConfig | None = None) -> PortfolioLedger:
        """Build a ledger on SQLite when config.db_path is set, in memory otherwise."""
        config = config or LedgerConfig.from_env()
        if config.db_path:
            logger.info("PortfolioLedger: using SQLite store at %s", config.db_path)
            return cls(
                SqliteTransactionStore(config.db_path),
                SqliteJournalStore(config.db_path),
                config=config,
            )
        logger.info("PortfolioLedger: using in-memory store")
        return cls(config=config)

    # --- bookkeeping ---

    def get_rejected_log(self) -> list[RejectedMutation]:
        """Return log of rejected mutations for debugging and reporting."""
        with self._rejected_guard:
            return list(self._rejected_log)

    @contextmanager
    def _mutation(self, account_id: str, action: str) -> Iterator[None]:
        """Serialize mutations per account and record rejections."""
        if not account_id:
            raise InvalidInput("account_id is required")
        with self._locks.lock_for(account_id):
            try:
                yield
            except LedgerError as exc:
                with self._rejected_guard:
                    self._rejected_log.append(
                        RejectedMutation(
                            account_id=account_id,
                            action=action,
                            reason=exc.reason,
                            message=str(exc),
                            timestamp=datetime.now(timezone.utc),
                        )
                    )
                logger.info("Rejected %s for account %s: %s", action, account_id, exc)
                raise

    def _append_trade(
        self,
        account_id: str,
        symbol: str,
        side: Side,
        quantity: float,
        price_usd: float,
        fee_usd: float,
        trade_at: datetime | None,
        note: str | None,
        journal_entry_id: str | None,
    ) -> Trade:
        trade = Trade(
            id=new_id("tr"),
            account_id=account_id,
            symbol=symbol,
            side=side,
            quantity=quantity,
            price_usd=price_usd,
            fee_usd=fee_usd,
            trade_at=_utc(trade_at),
            note=note,
            journal_entry_id=journal_entry_id,
        )
        self.store.append_trade(trade)
        logger.info(
            "Recorded %s %s %s @ %s (fee %s) for account %s",
            side.value,
            quantity,
            symbol,
            price_usd,
            fee_usd,
            account_id,
        )
        return trade

    def _append_cash(
        self,
        account_id: str,
        kind: CashKind,
        amount_usd: float,
        trade_at: datetime | None,
        note: str | None,
    ) -> CashAdjustment:
        adjustment = CashAdjustment(
            id=new_id("ca"),
            account_id=account_id,
            amount_usd=amount_usd,
            kind=kind,
            trade_at=_utc(trade_at),
            note=note,
        )
        self.store.append_cash_adjustment(adjustment)
        logger.info("Recorded %s of %.2f USD for account %s", kind.value, amount_usd, account_id)
        return adjustment

    # --- trades ---

    def _buy_locked(
        self,
        account_id: str,
        symbol: str,
        quantity: float,
        price_usd: float,
        fee_usd: float,
        trade_at: datetime | None,
        note: str | None,
        journal_entry_id: str | None,
    ) -> Trade:
        sym = require_symbol(symbol)
        quantity = require_positive("quantity", quantity)
        price_usd = require_positive("price_usd", price_usd)
        fee_usd = require_non_negative("fee_usd", fee_usd)
        if self.config.require_cash_for_buys:
            self.gate.validate_buy(account_id, quantity * price_usd + fee_usd)
        return self._append_trade(
            account_id, sym, Side.BUY, quantity, price_usd, fee_usd, trade_at, note, journal_entry_id
        )

    def _sell_locked(
        self,
        account_id: str,
        symbol: str,
        quantity: float,
        price_usd: float,
        fee_usd: float,
        trade_at: datetime | None,
        note: str | None,
        journal_entry_id: str | None,
    ) -> Trade:
        sym = require_symbol(symbol)
        quantity = require_positive("quantity", quantity)
        price_usd = require_positive("price_usd", price_usd)
        fee_usd = require_non_negative("fee_usd", fee_usd)
        self.gate.validate_sell(account_id, sym, quantity)
        shortfall = fee_usd - quantity * price_usd
        if shortfall > 0:
            # Fee larger than proceeds: the difference comes out of cash.
            self.gate.validate_buy(account_id, shortfall)
        return self._append_trade(
            account_id, sym, Side.SELL, quantity, price_usd, fee_usd, trade_at, note, journal_entry_id
        )

    def buy(
        self,
        account_id: str,
        symbol: str,
        quantity: float,
        price_usd: float,
        fee_usd: float = 0.0,
        *,
        trade_at: datetime | None = None,
        note: str | None = None,
    ) -> Trade:
        """Buy quantity of symbol at price_usd. Cost plus fee must be covered by cash."""
        with self._mutation(account_id, "buy"):
            return self._buy_locked(
                account_id, symbol, quantity, price_usd, fee_usd, trade_at, note, None
            )

    def buy_with_cash(
        self,
        account_id: str,
        symbol: str,
        price_usd: float,
        cash_to_spend: float,
        fee_usd: float = 0.0,
        *,
        trade_at: datetime | None = None,
        note: str | None = None,
    ) -> Trade:
        """Buy as much of symbol as cash_to_spend buys at price_usd; fee is charged on top."""
        with self._mutation(account_id, "buy"):
            cash_to_spend = require_positive("cash_to_spend", cash_to_spend)
            price_usd = require_positive("price_usd", price_usd)
            return self._buy_locked(
                account_id,
                symbol,
                cash_to_spend / price_usd,
                price_usd,
                fee_usd,
                trade_at,
                note,
                None,
            )

    def sell(
        self,
        account_id: str,
        symbol: str,
        quantity: float,
        price_usd: float,
        fee_usd: float = 0.0,
        *,
        trade_at: datetime | None = None,
        note: str | None = None,
    ) -> Trade:
        """Sell quantity of symbol. Rejected with InsufficientAsset beyond the held position."""
        with self._mutation(account_id, "sell"):
            return self._sell_locked(
                account_id, symbol, quantity, price_usd, fee_usd, trade_at, note, None
            )

    def record_journal_trade(
        self,
        account_id: str,
        entry: JournalEntry | str,
        *,
        price_usd: float | None = None,
        fee_usd: float = 0.0,
        trade_at: datetime | None = None,
    ) -> Trade:
        """
        Realize a journal entry as a portfolio trade and link the two.

        entry may be the JournalEntry or its id (looked up in the journal
        store). price_usd defaults to the entry price. The trade carries both
        the explicit reference and a [JE:<id>] note.
        """
        with self._mutation(account_id, "journal_trade"):
            if isinstance(entry, str):
                found = self.journal.find_by_id(account_id, entry)
                if found is None:
                    raise NotFound("journal entry", entry)
                entry = found
            elif entry.account_id != account_id:
                raise NotFound("journal entry", entry.id)
            price = entry.entry_price if price_usd is None else price_usd
            place = self._buy_locked if entry.side == Side.BUY else self._sell_locked
            return place(
                account_id,
                entry.asset,
                entry.amount,
                price,
                fee_usd,
                trade_at,
                journal_tag(entry.id),
                entry.id,
            )

    def delete_trade(self, account_id: str, trade_id: str, *, missing_ok: bool = False) -> Trade | None:
        """
        Delete a trade and cascade to its linked journal entry. See LinkageResolver.

        Removing a sell takes its proceeds out of cash, so it is rejected with
        InsufficientCash when the balance could not cover them.
        """
        with self._mutation(account_id, "delete_trade"):
            trade = self.store.get_trade(account_id, trade_id)
            if trade is not None:
                effect = trade_cash_effect(trade)
                if effect > 0:
                    self.gate.validate_buy(account_id, effect)
            return self.linkage.delete_trade(account_id, trade_id, missing_ok=missing_ok)

    # --- cash ---

    def deposit(
        self,
        account_id: str,
        amount_usd: float,
        *,
        trade_at: datetime | None = None,
        note: str | None = None,
    ) -> CashAdjustment:
        with self._mutation(account_id, "deposit"):
            amount_usd = require_positive("amount_usd", amount_usd)
            return self._append_cash(account_id, CashKind.DEPOSIT, amount_usd, trade_at, note)

    def withdraw(
        self,
        account_id: str,
        amount_usd: float,
        *,
        trade_at: datetime | None = None,
        note: str | None = None,
    ) -> CashAdjustment:
        """Withdraw cash. Rejected with InsufficientCash beyond the balance."""
        with self._mutation(account_id, "withdraw"):
            self.gate.validate_withdraw(account_id, amount_usd)
            return self._append_cash(account_id, CashKind.WITHDRAW, float(amount_usd), trade_at, note)

    def set_cash_balance(
        self,
        account_id: str,
        target_usd: float,
        *,
        trade_at: datetime | None = None,
    ) -> CashAdjustment | None:
        """
        Bring the cash balance to target_usd with one deposit or withdrawal.
        Returns None when the balance is already within tolerance of the target.
        """
        with self._mutation(account_id, "set_cash"):
            target_usd = require_non_negative("target_usd", target_usd)
            current = self.gate.cash_balance(account_id)
            if abs(target_usd - current) < self.config.epsilon:
                return None
            if target_usd > current:
                return self._append_cash(
                    account_id, CashKind.DEPOSIT, target_usd - current, trade_at, "[CASH_SET]"
                )
            delta = current - target_usd
            self.gate.validate_withdraw(account_id, delta)
            return self._append_cash(account_id, CashKind.WITHDRAW, delta, trade_at, "[CASH_SET]")

    def delete_cash_adjustment(self, account_id: str, adjustment_id: str) -> CashAdjustment:
        """
        Delete a cash adjustment. Removing a deposit is rejected with
        InsufficientCash when the remaining history could not fund the balance.
        """
        with self._mutation(account_id, "delete_cash"):
            adjustment = self.store.get_cash_adjustment(account_id, adjustment_id)
            if adjustment is None:
                raise NotFound("cash adjustment", adjustment_id)
            effect = adjustment_cash_effect(adjustment)
            if effect > 0:
                self.gate.validate_buy(account_id, effect)
            if not self.store.delete_cash_adjustment(account_id, adjustment_id):
                raise NotFound("cash adjustment", adjustment_id)
            logger.info("Deleted cash adjustment %s for account %s", adjustment_id, account_id)
            return adjustment

    # --- reads ---

    def position(self, account_id: str, symbol: str) -> Position | None:
        """Current position in symbol, or None when flat."""
        sym = require_symbol(symbol)
        return compute_position(self.store.list_trades(account_id, sym), sym, epsilon=self.config.epsilon)

    def positions(self, account_id: str) -> dict[str, Position]:
        return compute_positions(self.store.list_trades(account_id), epsilon=self.config.epsilon)

    def cash_balance(self, account_id: str) -> float:
        return self.gate.cash_balance(account_id)

    def snapshot(self, account_id: str) -> PortfolioSnapshot:
        """Cash and positions from a single read of the log."""
        trades = self.store.list_trades(account_id)
        adjustments = self.store.list_cash_adjustments(account_id)
        return PortfolioSnapshot(
            cash=compute_cash_balance(trades, adjustments),
            positions=compute_positions(trades, epsilon=self.config.epsilon),
        )

    def list_trades(self, account_id: str, symbol: str | None = None) -> list[Trade]:
        return self.store.list_trades(account_id, require_symbol(symbol) if symbol else None)

    def list_cash_adjustments(self, account_id: str) -> list[CashAdjustment]:
        return self.store.list_cash_adjustments(account_id)

