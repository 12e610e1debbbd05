"""
Portfolio report: print a holdings summary for one account.
"""

from __future__ import annotations

from collections.abc import Mapping

from reporting.metrics import HoldingsSummary, compute_holdings
from spotledger.ledger import PortfolioLedger


def print_report(
    ledger: PortfolioLedger,
    account_id: str,
    prices: Mapping[str, float] | None = None,
) -> HoldingsSummary:
    """
    Compute holdings for account_id and print a summary.

    Parameters
    ----------
    ledger : PortfolioLedger
        Ledger to read from.
    account_id : str
        Account to report on.
    prices : mapping of symbol -> price, optional
        Current prices; missing symbols use the last trade price.

    Returns
    -------
    HoldingsSummary
        The computed summary (e.g. for programmatic use).
    """
    summary = compute_holdings(ledger.snapshot(account_id), prices)
    print(f"--- Portfolio {account_id} ---")
    print(f"Cash:            {summary.cash_usd:,.2f} ({summary.cash_weight_pct:.2f}%)")
    print(f"Invested:        {summary.invested_usd:,.2f}")
    print(f"Market value:    {summary.market_value_usd:,.2f}")
    print(f"Equity:          {summary.equity_usd:,.2f}")
    print(f"Unrealized PnL:  {summary.unrealized_pnl_usd:,.2f} ({summary.unrealized_pnl_pct:.2f}%)")
    for h in summary.holdings:
        print(
            f"  {h.symbol:<8} {h.quantity:>14,.8f} @ {h.avg_entry_price_usd:,.2f}"
            f" -> {h.price_usd:,.2f}  value {h.market_value_usd:,.2f}"
            f"  pnl {h.unrealized_pnl_usd:,.2f} ({h.unrealized_pnl_pct:.2f}%)"
            f"  weight {h.weight_pct:.2f}%"
        )
    print(f"Positions:       {len(summary.holdings)}")
    print("----------------------------")
    return summary
