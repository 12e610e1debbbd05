"""
Tests for reporting: history table, holdings metrics, printed report.
"""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from reporting import compute_holdings, history_frame, print_report
from reporting.history import clamp_limit
from spotledger import PortfolioLedger, PortfolioSnapshot

ACC = "acc-1"
T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def _ledger() -> PortfolioLedger:
    ledger = PortfolioLedger()
    ledger.deposit(ACC, 10_000.0, trade_at=T0)
    ledger.buy(ACC, "BTC", 0.1, 50_000.0, fee_usd=5.0, trade_at=T0 + timedelta(hours=1))
    ledger.buy(ACC, "ETH", 2.0, 2_000.0, trade_at=T0 + timedelta(hours=2))
    ledger.sell(ACC, "ETH", 1.0, 2_500.0, fee_usd=2.5, trade_at=T0 + timedelta(hours=3))
    ledger.withdraw(ACC, 500.0, trade_at=T0 + timedelta(hours=4))
    return ledger


# --- history_frame ---


def test_history_newest_first_with_kinds():
    ledger = _ledger()
    df = history_frame(ledger.list_trades(ACC), ledger.list_cash_adjustments(ACC))
    assert list(df["kind"]) == ["cash_out", "sell", "buy", "buy", "cash_in"]
    assert list(df["asset"]) == ["CASH", "ETH", "ETH", "BTC", "CASH"]
    assert df["when"].is_monotonic_decreasing


def test_history_cash_deltas_sum_to_balance():
    ledger = _ledger()
    df = history_frame(ledger.list_trades(ACC), ledger.list_cash_adjustments(ACC))
    assert df["cash_delta_usd"].sum() == pytest.approx(ledger.cash_balance(ACC))
    btc = df[df["asset"] == "BTC"].iloc[0]
    assert btc["cash_delta_usd"] == pytest.approx(-5_005.0)


def test_history_limit():
    ledger = _ledger()
    df = history_frame(ledger.list_trades(ACC), ledger.list_cash_adjustments(ACC), limit=2)
    assert len(df) == 2
    assert list(df["kind"]) == ["cash_out", "sell"]


@pytest.mark.parametrize("raw, expected", [(None, 200), (0, 1), (-5, 1), (50, 50), (5000, 1000)])
def test_clamp_limit(raw, expected):
    assert clamp_limit(raw) == expected


def test_history_empty():
    df = history_frame([], [])
    assert isinstance(df, pd.DataFrame)
    assert df.empty
    assert "cash_delta_usd" in df.columns


# --- compute_holdings ---


def test_holdings_with_prices():
    ledger = _ledger()
    summary = compute_holdings(ledger.snapshot(ACC), {"BTC": 60_000.0, "ETH": 3_000.0})
    assert [h.symbol for h in summary.holdings] == ["BTC", "ETH"]
    btc, eth = summary.holdings
    assert btc.market_value_usd == pytest.approx(6_000.0)
    assert btc.unrealized_pnl_usd == pytest.approx(1_000.0)
    assert btc.unrealized_pnl_pct == pytest.approx(20.0)
    assert eth.invested_usd == pytest.approx(2_000.0)
    assert eth.unrealized_pnl_usd == pytest.approx(1_000.0)
    cash = ledger.cash_balance(ACC)
    assert summary.cash_usd == pytest.approx(cash)
    assert summary.equity_usd == pytest.approx(cash + 9_000.0)
    weights = sum(h.weight_pct for h in summary.holdings) + summary.cash_weight_pct
    assert weights == pytest.approx(100.0)


def test_holdings_fall_back_to_last_trade_price():
    ledger = _ledger()
    summary = compute_holdings(ledger.snapshot(ACC))
    eth = next(h for h in summary.holdings if h.symbol == "ETH")
    assert eth.price_usd == 2_500.0
    assert eth.unrealized_pnl_usd == pytest.approx(500.0)


def test_holdings_cash_only():
    summary = compute_holdings(PortfolioSnapshot(cash=250.0))
    assert summary.holdings == []
    assert summary.equity_usd == 250.0
    assert summary.cash_weight_pct == 100.0


# --- print_report ---


def test_print_report(capsys):
    ledger = _ledger()
    summary = print_report(ledger, ACC, {"BTC": 60_000.0})
    out = capsys.readouterr().out
    assert "Portfolio acc-1" in out
    assert "BTC" in out and "ETH" in out
    assert summary.market_value_usd == pytest.approx(6_000.0 + 2_500.0)
