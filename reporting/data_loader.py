"""
Load trade history from CSV or DataFrame for replay into a ledger.

Expects one row per fill with symbol, side, quantity and price columns.
Column names are case-insensitive and common aliases are accepted.
"""

from __future__ import annotations

from pathlib import Path

import pandas as pd

from spotledger.ledger import PortfolioLedger
from spotledger.records import Side, Trade, new_id, normalize_symbol

REQUIRED = ("symbol", "side", "quantity", "price_usd")
OPTIONAL = ("fee_usd", "trade_at", "note", "id")


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Ensure columns are lowercase; map common aliases to the Trade field names."""
    out = df.copy()
    out.columns = [str(c).lower().strip() for c in out.columns]
    # Common aliases
    renames = {
        "asset": "symbol",
        "ticker": "symbol",
        "qty": "quantity",
        "amount": "quantity",
        "price": "price_usd",
        "fee": "fee_usd",
        "fees": "fee_usd",
        "date": "trade_at",
        "datetime": "trade_at",
        "executed_at": "trade_at",
        "notes": "note",
    }
    out = out.rename(columns={k: v for k, v in renames.items() if k in out.columns and v not in out.columns})
    return out


def load_trades_dataframe(
    df: pd.DataFrame,
    account_id: str,
    *,
    datetime_format: str | None = None,
) -> list[Trade]:
    """
    Convert a DataFrame of fills to Trade records, oldest first.

    Parameters
    ----------
    df : pd.DataFrame
        Raw fills (columns may be mixed case or aliased).
    account_id : str
        Account the trades belong to.
    datetime_format : str, optional
        Format for parsing trade_at (e.g. '%Y-%m-%d'). Missing timestamps
        default to now; naive timestamps are taken as UTC.

    Returns
    -------
    list[Trade]
        Records ready to be replayed through PortfolioLedger.buy/sell.
    """
    out = _normalize_columns(df)
    missing = [c for c in REQUIRED if c not in out.columns]
    if missing:
        raise ValueError(f"missing required columns: {', '.join(missing)}")

    if "trade_at" in out.columns:
        out["trade_at"] = pd.to_datetime(out["trade_at"], format=datetime_format, utc=True)
    else:
        out["trade_at"] = pd.Timestamp.now(tz="UTC")
    out["fee_usd"] = out["fee_usd"].fillna(0.0) if "fee_usd" in out.columns else 0.0
    out = out.sort_values("trade_at", kind="stable")

    trades: list[Trade] = []
    for _, row in out.iterrows():
        note = row.get("note")
        trades.append(
            Trade(
                id=str(row["id"]) if "id" in out.columns and pd.notna(row["id"]) else new_id("tr"),
                account_id=account_id,
                symbol=normalize_symbol(str(row["symbol"])),
                side=str(row["side"]).strip().lower(),
                quantity=float(row["quantity"]),
                price_usd=float(row["price_usd"]),
                fee_usd=float(row["fee_usd"]),
                trade_at=row["trade_at"].to_pydatetime(),
                note=str(note) if note is not None and pd.notna(note) else None,
            )
        )
    return trades


def load_trades_csv(
    path: str | Path,
    account_id: str,
    *,
    datetime_format: str | None = None,
) -> list[Trade]:
    """Load fills from a CSV file. See load_trades_dataframe for the accepted columns."""
    df = pd.read_csv(path)
    return load_trades_dataframe(df, account_id, datetime_format=datetime_format)


def replay_trades(ledger: PortfolioLedger, trades: list[Trade]) -> list[Trade]:
    """
    Push loaded trades through the ledger's gated buy/sell, oldest first.

    Each row gets a fresh id; a rejected row raises and stops the replay,
    leaving the rows before it recorded.
    """
    recorded: list[Trade] = []
    for t in sorted(trades, key=lambda t: t.trade_at):
        place = ledger.buy if t.side == Side.BUY else ledger.sell
        recorded.append(
            place(
                t.account_id,
                t.symbol,
                t.quantity,
                t.price_usd,
                t.fee_usd,
                trade_at=t.trade_at,
                note=t.note,
            )
        )
    return recorded
