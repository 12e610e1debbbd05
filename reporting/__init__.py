"""
Reporting on top of spotledger.

History tables, holdings valuation and CSV import. Read-only apart from
replay_trades, which goes through the ledger's gated mutations.
"""

from reporting.data_loader import load_trades_csv, load_trades_dataframe, replay_trades
from reporting.history import history_frame
from reporting.metrics import HoldingLine, HoldingsSummary, compute_holdings
from reporting.portfolio_report import print_report

__all__ = [
    "HoldingLine",
    "HoldingsSummary",
    "compute_holdings",
    "history_frame",
    "load_trades_csv",
    "load_trades_dataframe",
    "print_report",
    "replay_trades",
]
