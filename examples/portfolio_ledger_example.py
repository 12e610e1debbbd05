"""
Portfolio ledger example: cash, trades, a journal-linked trade, and a report.

Shows: PortfolioLedger over SQLite (or memory), gated buy/sell/withdraw,
rejections, cascade delete of a journal-linked trade, history and holdings.
Run from the repository root: python examples/portfolio_ledger_example.py
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from reporting import history_frame, print_report
from spotledger import InsufficientAsset, InsufficientCash, JournalEntry, LedgerConfig, PortfolioLedger, Side


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    account = "demo-account"

    with tempfile.TemporaryDirectory() as tmp:
        config = LedgerConfig(db_path=str(Path(tmp) / "ledger.sqlite3"))
        ledger = PortfolioLedger.from_config(config)

        ledger.deposit(account, 25_000.0)
        ledger.buy(account, "BTC", 0.25, 60_000.0, fee_usd=7.5)
        ledger.buy_with_cash(account, "ETH", 3_000.0, 6_000.0, fee_usd=3.0)
        ledger.sell(account, "ETH", 0.5, 3_400.0, fee_usd=1.0)

        try:
            ledger.sell(account, "BTC", 1.0, 61_000.0)
        except InsufficientAsset as e:
            print(f"Rejected: {e}")
        try:
            ledger.withdraw(account, 1_000_000.0)
        except InsufficientCash as e:
            print(f"Rejected: {e}")

        # Journal entry realized as a trade, then removed together with it.
        ledger.journal.add(
            JournalEntry(id="je-1", account_id=account, asset="SOL", side=Side.BUY, amount=10.0, entry_price=150.0)
        )
        sol = ledger.record_journal_trade(account, "je-1")
        ledger.delete_trade(account, sol.id)
        print(f"Journal entry after cascade: {ledger.journal.find_by_id(account, 'je-1')}")

        print()
        print(history_frame(ledger.list_trades(account), ledger.list_cash_adjustments(account)).to_string())
        print()
        print_report(ledger, account, {"BTC": 64_000.0, "ETH": 3_100.0})
        print(f"Rejected mutations: {len(ledger.get_rejected_log())}")


if __name__ == "__main__":
    main()
