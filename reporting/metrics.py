"""
Holdings metrics: market value, unrealized PnL and allocation per position.

Prices come from the caller (a price feed the ledger does not own). A symbol
with no supplied price is valued at its last trade price.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

from spotledger.portfolio import PortfolioSnapshot


@dataclass
class HoldingLine:
    """Valuation of one open position."""

    symbol: str
    quantity: float
    avg_entry_price_usd: float
    invested_usd: float
    price_usd: float
    market_value_usd: float
    unrealized_pnl_usd: float
    unrealized_pnl_pct: float
    weight_pct: float


@dataclass
class HoldingsSummary:
    """Account-level valuation. Weights are percentages of total equity."""

    cash_usd: float
    invested_usd: float
    market_value_usd: float
    equity_usd: float
    unrealized_pnl_usd: float
    unrealized_pnl_pct: float
    cash_weight_pct: float
    holdings: list[HoldingLine] = field(default_factory=list)


def compute_holdings(
    snapshot: PortfolioSnapshot,
    prices: Mapping[str, float] | None = None,
) -> HoldingsSummary:
    """
    Value every open position in snapshot.

    Parameters
    ----------
    snapshot : PortfolioSnapshot
        Output of PortfolioLedger.snapshot().
    prices : mapping of symbol -> price, optional
        Current prices. Missing symbols fall back to the last trade price.

    Returns
    -------
    HoldingsSummary
        Totals plus one HoldingLine per position, largest market value first.
    """
    prices = prices or {}
    symbols = sorted(snapshot.positions)
    cash = float(snapshot.cash)
    if not symbols:
        return HoldingsSummary(
            cash_usd=cash,
            invested_usd=0.0,
            market_value_usd=0.0,
            equity_usd=cash,
            unrealized_pnl_usd=0.0,
            unrealized_pnl_pct=0.0,
            cash_weight_pct=100.0 if cash > 0 else 0.0,
        )

    positions = [snapshot.positions[s] for s in symbols]
    qty = np.array([p.quantity for p in positions], dtype=float)
    invested = np.array([p.invested_usd for p in positions], dtype=float)
    px = np.array(
        [
            float(prices.get(p.symbol, p.last_price_usd or p.avg_entry_price_usd))
            for p in positions
        ],
        dtype=float,
    )
    value = qty * px
    pnl = value - invested
    pnl_pct = np.divide(pnl, invested, out=np.zeros_like(pnl), where=invested > 1e-14) * 100.0

    market_value = float(value.sum())
    equity = cash + market_value
    weights = value / equity * 100.0 if equity > 1e-14 else np.zeros_like(value)
    total_invested = float(invested.sum())
    total_pnl = market_value - total_invested

    lines = [
        HoldingLine(
            symbol=p.symbol,
            quantity=float(qty[i]),
            avg_entry_price_usd=p.avg_entry_price_usd,
            invested_usd=float(invested[i]),
            price_usd=float(px[i]),
            market_value_usd=float(value[i]),
            unrealized_pnl_usd=float(pnl[i]),
            unrealized_pnl_pct=float(pnl_pct[i]),
            weight_pct=float(weights[i]),
        )
        for i, p in enumerate(positions)
    ]
    lines.sort(key=lambda h: h.market_value_usd, reverse=True)

    return HoldingsSummary(
        cash_usd=cash,
        invested_usd=total_invested,
        market_value_usd=market_value,
        equity_usd=equity,
        unrealized_pnl_usd=total_pnl,
        unrealized_pnl_pct=(total_pnl / total_invested * 100.0) if total_invested > 1e-14 else 0.0,
        cash_weight_pct=(cash / equity * 100.0) if equity > 1e-14 else 0.0,
        holdings=lines,
    )
