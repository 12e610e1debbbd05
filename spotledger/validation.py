"""
ValidationGate: checks a proposed mutation against currently derived state.

Read-only. Raises a LedgerError subclass to reject; returns the derived value
it checked against on success. The caller appends only after a successful
check, and must hold the account lock across check and append to rule out
two requests passing against the same snapshot.
"""

from __future__ import annotations

import math

from spotledger.errors import InsufficientAsset, InsufficientCash, InvalidInput
from spotledger.portfolio import EPSILON, compute_cash_balance, compute_position
from spotledger.records import CASH_SYMBOL, normalize_symbol
from spotledger.storage.base import TransactionStore


def exceeds(requested: float, available: float, epsilon: float = EPSILON) -> bool:
    """
    True when requested is not covered by available plus tolerance.

    The tolerance boundary itself is excluded: available + epsilon and a
    requested value one epsilon over are usually the same float.
    """
    return requested > available and requested >= available + epsilon


def require_positive(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidInput(f"{name} must be a positive number, got {value!r}")
    return float(value)


def require_non_negative(name: str, value: float) -> float:
    if value is None or not math.isfinite(value) or value < 0:
        raise InvalidInput(f"{name} must be >= 0, got {value!r}")
    return float(value)


def require_symbol(symbol: str) -> str:
    """Normalized tradable symbol. CASH is reserved for the cash balance."""
    try:
        sym = normalize_symbol(symbol)
    except ValueError as exc:
        raise InvalidInput(str(exc)) from exc
    if sym == CASH_SYMBOL:
        raise InvalidInput(f"{CASH_SYMBOL} is not a tradable symbol")
    return sym


class ValidationGate:
    """Sufficiency checks over the aggregates of one store."""

    def __init__(self, store: TransactionStore, *, epsilon: float = EPSILON) -> None:
        self.store = store
        self.epsilon = epsilon

    def held_quantity(self, account_id: str, symbol: str) -> float:
        pos = compute_position(
            self.store.list_trades(account_id, symbol), symbol, epsilon=self.epsilon
        )
        return pos.quantity if pos is not None else 0.0

    def cash_balance(self, account_id: str) -> float:
        return compute_cash_balance(
            self.store.list_trades(account_id),
            self.store.list_cash_adjustments(account_id),
        )

    def validate_sell(self, account_id: str, symbol: str, requested_qty: float) -> float:
        """Reject with InsufficientAsset if requested_qty is not covered by the position."""
        symbol = require_symbol(symbol)
        requested_qty = require_positive("quantity", requested_qty)
        held = self.held_quantity(account_id, symbol)
        if exceeds(requested_qty, held, self.epsilon):
            raise InsufficientAsset(symbol, requested_qty, held)
        return held

    def validate_withdraw(self, account_id: str, requested_amount_usd: float) -> float:
        """Reject with InsufficientCash if the withdrawal is not covered by the balance."""
        requested_amount_usd = require_positive("amount_usd", requested_amount_usd)
        cash = self.cash_balance(account_id)
        if exceeds(requested_amount_usd, cash, self.epsilon):
            raise InsufficientCash(requested_amount_usd, cash)
        return cash

    def validate_buy(self, account_id: str, required_cash_usd: float) -> float:
        """Reject with InsufficientCash if cost plus fee is not covered by the balance."""
        cash = self.cash_balance(account_id)
        if exceeds(required_cash_usd, cash, self.epsilon):
            raise InsufficientCash(required_cash_usd, cash)
        return cash
