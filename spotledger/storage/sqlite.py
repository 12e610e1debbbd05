"""
SQLite stores: durable, crash-safe appends on a single database file.

Each call opens its own connection and runs in one transaction, so a record
is either fully written or not at all, and the stores can be shared across
threads. sqlite3 failures surface as StoreError.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from spotledger.errors import StoreError
from spotledger.records import CashAdjustment, CashKind, JournalEntry, Side, Trade
from spotledger.storage.base import JournalStore, TransactionStore

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS portfolio_trade (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    account_id TEXT NOT NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL CHECK (side IN ('buy', 'sell')),
    quantity REAL NOT NULL CHECK (quantity > 0),
    price_usd REAL NOT NULL CHECK (price_usd > 0),
    fee_usd REAL NOT NULL DEFAULT 0 CHECK (fee_usd >= 0),
    trade_at TEXT NOT NULL,
    note TEXT,
    journal_entry_id TEXT
);
CREATE INDEX IF NOT EXISTS ix_trade_account_symbol ON portfolio_trade(account_id, symbol);

CREATE TABLE IF NOT EXISTS cash_adjustment (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    account_id TEXT NOT NULL,
    amount_usd REAL NOT NULL CHECK (amount_usd > 0),
    kind TEXT NOT NULL CHECK (kind IN ('deposit', 'withdraw')),
    trade_at TEXT NOT NULL,
    note TEXT
);
CREATE INDEX IF NOT EXISTS ix_cash_account ON cash_adjustment(account_id);

CREATE TABLE IF NOT EXISTS journal_entry (
    id TEXT PRIMARY KEY,
    account_id TEXT NOT NULL,
    asset TEXT NOT NULL,
    side TEXT NOT NULL,
    status TEXT NOT NULL,
    entry_price REAL NOT NULL,
    exit_price REAL,
    amount REAL NOT NULL
);
"""

_TRADE_COLUMNS = "id, account_id, symbol, side, quantity, price_usd, fee_usd, trade_at, note, journal_entry_id"
_CASH_COLUMNS = "id, account_id, amount_usd, kind, trade_at, note"
_JOURNAL_COLUMNS = "id, account_id, asset, side, status, entry_price, exit_price, amount"


class _SqliteBase:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as con:
            con.executescript(_SCHEMA)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """One connection, one transaction: commit on success, roll back on error."""
        try:
            con = sqlite3.connect(self.path, timeout=30.0)
        except sqlite3.Error as exc:
            logger.exception("Cannot open ledger database %s", self.path)
            raise StoreError(f"cannot open {self.path}: {exc}") from exc
        try:
            with con:
                yield con
        except sqlite3.Error as exc:
            logger.exception("Ledger database error on %s", self.path)
            raise StoreError(str(exc)) from exc
        finally:
            con.close()


def _trade_from_row(row: tuple) -> Trade:
    return Trade(
        id=row[0],
        account_id=row[1],
        symbol=row[2],
        side=Side(row[3]),
        quantity=float(row[4]),
        price_usd=float(row[5]),
        fee_usd=float(row[6]),
        trade_at=datetime.fromisoformat(row[7]),
        note=row[8],
        journal_entry_id=row[9],
    )


def _cash_from_row(row: tuple) -> CashAdjustment:
    return CashAdjustment(
        id=row[0],
        account_id=row[1],
        amount_usd=float(row[2]),
        kind=CashKind(row[3]),
        trade_at=datetime.fromisoformat(row[4]),
        note=row[5],
    )


class SqliteTransactionStore(_SqliteBase, TransactionStore):
    """Trade and cash log in a SQLite file."""

    def append_trade(self, trade: Trade) -> None:
        with self._connect() as con:
            con.execute(
                f"INSERT INTO portfolio_trade({_TRADE_COLUMNS}) VALUES(?,?,?,?,?,?,?,?,?,?)",
                (
                    trade.id,
                    trade.account_id,
                    trade.symbol,
                    trade.side.value,
                    trade.quantity,
                    trade.price_usd,
                    trade.fee_usd,
                    trade.trade_at.isoformat(),
                    trade.note,
                    trade.journal_entry_id,
                ),
            )

    def append_cash_adjustment(self, adjustment: CashAdjustment) -> None:
        with self._connect() as con:
            con.execute(
                f"INSERT INTO cash_adjustment({_CASH_COLUMNS}) VALUES(?,?,?,?,?,?)",
                (
                    adjustment.id,
                    adjustment.account_id,
                    adjustment.amount_usd,
                    adjustment.kind.value,
                    adjustment.trade_at.isoformat(),
                    adjustment.note,
                ),
            )

    def get_trade(self, account_id: str, trade_id: str) -> Trade | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_TRADE_COLUMNS} FROM portfolio_trade WHERE id=? AND account_id=?",
                (trade_id, account_id),
            ).fetchone()
        return _trade_from_row(row) if row else None

    def get_cash_adjustment(self, account_id: str, adjustment_id: str) -> CashAdjustment | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_CASH_COLUMNS} FROM cash_adjustment WHERE id=? AND account_id=?",
                (adjustment_id, account_id),
            ).fetchone()
        return _cash_from_row(row) if row else None

    def list_trades(self, account_id: str, symbol: str | None = None) -> list[Trade]:
        sql = f"SELECT {_TRADE_COLUMNS} FROM portfolio_trade WHERE account_id=?"
        params: tuple = (account_id,)
        if symbol is not None:
            sql += " AND symbol=?"
            params = (account_id, symbol)
        with self._connect() as con:
            rows = con.execute(sql + " ORDER BY seq", params).fetchall()
        # Timestamps may mix offsets, so order on parsed datetimes rather than text.
        return sorted((_trade_from_row(r) for r in rows), key=lambda t: t.trade_at)

    def list_cash_adjustments(self, account_id: str) -> list[CashAdjustment]:
        with self._connect() as con:
            rows = con.execute(
                f"SELECT {_CASH_COLUMNS} FROM cash_adjustment WHERE account_id=? ORDER BY seq",
                (account_id,),
            ).fetchall()
        return sorted((_cash_from_row(r) for r in rows), key=lambda a: a.trade_at)

    def delete_trade(self, account_id: str, trade_id: str) -> bool:
        with self._connect() as con:
            cur = con.execute(
                "DELETE FROM portfolio_trade WHERE id=? AND account_id=?",
                (trade_id, account_id),
            )
        return cur.rowcount > 0

    def delete_cash_adjustment(self, account_id: str, adjustment_id: str) -> bool:
        with self._connect() as con:
            cur = con.execute(
                "DELETE FROM cash_adjustment WHERE id=? AND account_id=?",
                (adjustment_id, account_id),
            )
        return cur.rowcount > 0


class SqliteJournalStore(_SqliteBase, JournalStore):
    """Journal entries in the same SQLite file as the ledger (or a separate one)."""

    def add(self, entry: JournalEntry) -> None:
        with self._connect() as con:
            con.execute(
                f"INSERT OR REPLACE INTO journal_entry({_JOURNAL_COLUMNS}) VALUES(?,?,?,?,?,?,?,?)",
                (
                    entry.id,
                    entry.account_id,
                    entry.asset,
                    entry.side.value,
                    entry.status,
                    entry.entry_price,
                    entry.exit_price,
                    entry.amount,
                ),
            )

    def find_by_id(self, account_id: str, entry_id: str) -> JournalEntry | None:
        with self._connect() as con:
            row = con.execute(
                f"SELECT {_JOURNAL_COLUMNS} FROM journal_entry WHERE id=? AND account_id=?",
                (entry_id, account_id),
            ).fetchone()
        if not row:
            return None
        return JournalEntry(
            id=row[0],
            account_id=row[1],
            asset=row[2],
            side=Side(row[3]),
            status=row[4],
            entry_price=float(row[5]),
            exit_price=float(row[6]) if row[6] is not None else None,
            amount=float(row[7]),
        )

    def delete_by_id(self, account_id: str, entry_id: str) -> bool:
        with self._connect() as con:
            cur = con.execute(
                "DELETE FROM journal_entry WHERE id=? AND account_id=?",
                (entry_id, account_id),
            )
        return cur.rowcount > 0
