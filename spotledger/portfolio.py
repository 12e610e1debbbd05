"""
Portfolio: positions and cash, derived from the trade and cash log.

Nothing here is stored. Every read folds the full history again, so the
derived balance cannot drift from the records it is built from.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field

from spotledger.records import CashAdjustment, CashKind, Side, Trade

EPSILON = 1e-8


@dataclass(frozen=True)
class Position:
    """Open spot holding for one symbol. Only exists while quantity > 0."""

    symbol: str
    quantity: float
    invested_usd: float
    last_price_usd: float | None = None

    @property
    def avg_entry_price_usd(self) -> float:
        return self.invested_usd / self.quantity


@dataclass
class PortfolioSnapshot:
    """
    Cash and open positions for one account at read time.
    Read model for validation and reporting.
    """

    cash: float = 0.0
    positions: dict[str, Position] = field(default_factory=dict)

    def position(self, symbol: str) -> float:
        """Quantity held in symbol. 0 if not present."""
        pos = self.positions.get(symbol)
        return pos.quantity if pos is not None else 0.0


def _ordered(trades: Iterable[Trade]) -> list[Trade]:
    # sorted() is stable, so equal timestamps keep insertion order.
    return sorted(trades, key=lambda t: t.trade_at)


def compute_position(
    trades: Iterable[Trade],
    symbol: str,
    *,
    epsilon: float = EPSILON,
) -> Position | None:
    """
    Fold trades for symbol into a weighted-average-cost position.

    Quantity is a signed running total, so the held quantity is buys minus
    sells whatever order the records arrive in. A backdated sell may take it
    below zero for a while; later buys fill that gap before adding to the
    holding. Sells remove the same fraction of invested capital as of
    quantity, so the average entry price of what remains is unchanged. A
    remainder within epsilon of zero is treated as flat. Fees only affect cash.

    Returns None when nothing is held.
    """
    quantity = 0.0
    invested = 0.0
    last_price: float | None = None
    for t in _ordered(t for t in trades if t.symbol == symbol):
        last_price = t.price_usd
        before = quantity
        if t.side == Side.BUY:
            quantity += t.quantity
            if before >= 0:
                invested += t.quantity * t.price_usd
                continue
            if abs(quantity) < epsilon:
                quantity = 0.0
            # Only the part beyond the earlier shortfall is held.
            invested = quantity * t.price_usd if quantity > 0 else 0.0
            continue
        quantity -= t.quantity
        if before <= 0:
            continue
        if quantity < epsilon:
            invested = 0.0
            if quantity > -epsilon:
                quantity = 0.0
            continue
        invested -= t.quantity / before * invested

    if quantity <= 0:
        return None
    return Position(
        symbol=symbol,
        quantity=quantity,
        invested_usd=max(invested, 0.0),
        last_price_usd=last_price,
    )


def compute_positions(
    trades: Iterable[Trade],
    *,
    epsilon: float = EPSILON,
) -> dict[str, Position]:
    """Open positions for every symbol that appears in trades."""
    trades = list(trades)
    out: dict[str, Position] = {}
    for sym in sorted({t.symbol for t in trades}):
        pos = compute_position(trades, sym, epsilon=epsilon)
        if pos is not None:
            out[sym] = pos
    return out


def trade_cash_effect(trade: Trade) -> float:
    """Signed settlement of a trade: buys pay price and fee, sells receive price less fee."""
    if trade.side == Side.BUY:
        return -(trade.gross_usd + trade.fee_usd)
    return trade.gross_usd - trade.fee_usd


def adjustment_cash_effect(adjustment: CashAdjustment) -> float:
    if adjustment.kind == CashKind.DEPOSIT:
        return adjustment.amount_usd
    return -adjustment.amount_usd


def compute_cash_balance(
    trades: Iterable[Trade],
    adjustments: Iterable[CashAdjustment],
) -> float:
    """
    Cash balance: every adjustment plus the settlement of every trade.

    Summed with math.fsum, so the result does not depend on record order and
    a deposit followed by an equal withdrawal cancels exactly.
    """
    effects = [adjustment_cash_effect(a) for a in adjustments]
    effects.extend(trade_cash_effect(t) for t in trades)
    return math.fsum(effects)
