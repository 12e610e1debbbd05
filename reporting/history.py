"""
Transaction history: trades and cash adjustments as one table, newest first.

Each row carries the signed cash effect it had on the balance, so the
cash_delta_usd column of the full history sums to the derived cash balance.
"""

from __future__ import annotations

from collections.abc import Iterable

import pandas as pd

from spotledger.portfolio import adjustment_cash_effect, trade_cash_effect
from spotledger.records import CASH_SYMBOL, CashAdjustment, CashKind, Side, Trade

COLUMNS = (
    "id",
    "when",
    "asset",
    "kind",
    "qty",
    "price_usd",
    "fee_usd",
    "cash_delta_usd",
    "note",
)

DEFAULT_LIMIT = 200
MAX_LIMIT = 1000


def clamp_limit(limit: int | None) -> int:
    """Row limit bounded to [1, MAX_LIMIT]; None means DEFAULT_LIMIT."""
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(int(limit), 1), MAX_LIMIT)


def _trade_row(t: Trade) -> dict:
    return {
        "id": t.id,
        "when": t.trade_at,
        "asset": t.symbol,
        "kind": "buy" if t.side == Side.BUY else "sell",
        "qty": t.quantity,
        "price_usd": t.price_usd,
        "fee_usd": t.fee_usd,
        "cash_delta_usd": trade_cash_effect(t),
        "note": t.note,
    }


def _cash_row(a: CashAdjustment) -> dict:
    return {
        "id": a.id,
        "when": a.trade_at,
        "asset": CASH_SYMBOL,
        "kind": "cash_in" if a.kind == CashKind.DEPOSIT else "cash_out",
        "qty": a.amount_usd,
        "price_usd": 1.0,
        "fee_usd": 0.0,
        "cash_delta_usd": adjustment_cash_effect(a),
        "note": a.note,
    }


def history_frame(
    trades: Iterable[Trade],
    adjustments: Iterable[CashAdjustment],
    *,
    limit: int | None = DEFAULT_LIMIT,
) -> pd.DataFrame:
    """
    Build the history table.

    Parameters
    ----------
    trades, adjustments
        Records of one account, in any order.
    limit : int, optional
        Maximum rows, clamped to [1, 1000]. Default 200.

    Returns
    -------
    pd.DataFrame
        Columns id, when, asset, kind (buy/sell/cash_in/cash_out), qty,
        price_usd, fee_usd, cash_delta_usd, note. Sorted newest first.
    """
    rows = [_trade_row(t) for t in trades] + [_cash_row(a) for a in adjustments]
    if not rows:
        return pd.DataFrame(columns=list(COLUMNS))
    df = pd.DataFrame(rows, columns=list(COLUMNS))
    df["when"] = pd.to_datetime(df["when"], utc=True)
    df = df.sort_values("when", ascending=False, kind="stable").reset_index(drop=True)
    return df.head(clamp_limit(limit))
