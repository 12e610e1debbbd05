"""
Tests for spotledger records and aggregators: Trade, CashAdjustment, positions, cash.
"""

from datetime import datetime, timedelta, timezone

import pytest

from spotledger import CashAdjustment, CashKind, Side, Trade, compute_cash_balance, compute_position, compute_positions
from spotledger.records import journal_tag, normalize_symbol, parse_journal_tag

T0 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


def _trade(side, qty, price, fee=0.0, symbol="BTC", minutes=0, note=None, tid=None):
    return Trade(
        id=tid or f"t{minutes}-{side}",
        account_id="acc-1",
        symbol=symbol,
        side=Side(side),
        quantity=qty,
        price_usd=price,
        fee_usd=fee,
        trade_at=T0 + timedelta(minutes=minutes),
        note=note,
    )


def _cash(kind, amount, minutes=0):
    return CashAdjustment(
        id=f"c{minutes}-{kind}",
        account_id="acc-1",
        amount_usd=amount,
        kind=CashKind(kind),
        trade_at=T0 + timedelta(minutes=minutes),
    )


# --- Records ---


def test_trade_immutable():
    t = _trade("buy", 1.0, 100.0)
    with pytest.raises(AttributeError):
        t.quantity = 2.0


def test_trade_coerces_side_and_timestamp():
    t = Trade(
        id="x",
        account_id="acc-1",
        symbol="ETH",
        side="SELL",
        quantity=1.0,
        price_usd=10.0,
        trade_at="2024-01-15T10:00:00+00:00",
    )
    assert t.side == Side.SELL
    assert t.trade_at == T0


def test_journal_tag_round_trip():
    assert journal_tag("abc123") == "[JE:abc123]"
    assert parse_journal_tag("[JE:abc123]") == "abc123"
    assert parse_journal_tag(" [JE:abc123] ") == "abc123"


@pytest.mark.parametrize("note", [None, "", "manual entry", "[JE:]", "[PORTFOLIO_ADD]", "x [JE:abc]"])
def test_parse_journal_tag_rejects_other_notes(note):
    assert parse_journal_tag(note) is None


def test_linked_journal_entry_prefers_explicit_reference():
    t = Trade(
        id="x",
        account_id="acc-1",
        symbol="BTC",
        side=Side.BUY,
        quantity=1.0,
        price_usd=1.0,
        trade_at=T0,
        note="[JE:from-note]",
        journal_entry_id="explicit",
    )
    assert t.linked_journal_entry_id == "explicit"
    assert _trade("buy", 1.0, 1.0, note="[JE:from-note]").linked_journal_entry_id == "from-note"
    assert _trade("buy", 1.0, 1.0).linked_journal_entry_id is None


def test_normalize_symbol():
    assert normalize_symbol("  btc ") == "BTC"
    with pytest.raises(ValueError):
        normalize_symbol("   ")


# --- Positions ---


def test_buys_only_average_is_invested_over_quantity():
    trades = [
        _trade("buy", 0.5, 40_000.0, minutes=0),
        _trade("buy", 0.25, 44_000.0, minutes=1),
        _trade("buy", 1.0, 38_500.0, fee=12.0, minutes=2),
    ]
    pos = compute_position(trades, "BTC")
    assert pos is not None
    assert pos.quantity == 0.5 + 0.25 + 1.0
    assert pos.invested_usd == 0.5 * 40_000.0 + 0.25 * 44_000.0 + 1.0 * 38_500.0
    assert pos.avg_entry_price_usd == pos.invested_usd / pos.quantity


def test_fee_excluded_from_cost_basis():
    pos = compute_position([_trade("buy", 2.0, 50.0, fee=5.0)], "BTC")
    assert pos.invested_usd == 100.0
    assert pos.avg_entry_price_usd == 50.0


def test_partial_sell_keeps_average_entry():
    trades = [_trade("buy", 10.0, 100.0, minutes=0), _trade("sell", 4.0, 130.0, minutes=1)]
    pos = compute_position(trades, "BTC")
    assert pos.quantity == 6.0
    assert pos.invested_usd == pytest.approx(600.0)
    assert pos.avg_entry_price_usd == pytest.approx(100.0)
    assert pos.last_price_usd == 130.0


def test_buy_after_partial_sell_reweights_average():
    trades = [
        _trade("buy", 10.0, 100.0, minutes=0),
        _trade("sell", 5.0, 120.0, minutes=1),
        _trade("buy", 5.0, 200.0, minutes=2),
    ]
    pos = compute_position(trades, "BTC")
    assert pos.quantity == 10.0
    assert pos.invested_usd == pytest.approx(500.0 + 1000.0)
    assert pos.avg_entry_price_usd == pytest.approx(150.0)


def test_fold_orders_by_trade_at_not_input_order():
    buy = _trade("buy", 10.0, 100.0, minutes=0)
    sell = _trade("sell", 4.0, 130.0, minutes=5)
    later_buy = _trade("buy", 4.0, 250.0, minutes=10)
    a = compute_position([later_buy, sell, buy], "BTC")
    b = compute_position([buy, sell, later_buy], "BTC")
    assert a == b
    assert a.invested_usd == pytest.approx(600.0 + 1000.0)


def test_full_sell_closes_position():
    trades = [_trade("buy", 3.0, 10.0, minutes=0), _trade("sell", 3.0, 12.0, minutes=1)]
    assert compute_position(trades, "BTC") is None


def test_sell_within_tolerance_clears_dust():
    trades = [_trade("buy", 6.0, 10.0, minutes=0), _trade("sell", 6.0 - 1e-9, 12.0, minutes=1)]
    assert compute_position(trades, "BTC") is None


def test_backdated_sell_counts_against_later_buy():
    sell = _trade("sell", 5.0, 100.0, minutes=-60)
    buy = _trade("buy", 10.0, 100.0, minutes=0)
    pos = compute_position([buy, sell], "BTC")
    assert pos.quantity == 5.0
    assert pos.invested_usd == pytest.approx(500.0)
    assert pos.avg_entry_price_usd == pytest.approx(100.0)


def test_quantity_is_buys_minus_sells_in_any_timestamp_order():
    trades = [
        _trade("sell", 3.0, 90.0, minutes=-5),
        _trade("buy", 4.0, 50.0, minutes=10),
        _trade("buy", 6.0, 80.0, minutes=20),
        _trade("sell", 3.0, 90.0, minutes=25),
    ]
    pos = compute_position(trades, "BTC")
    assert pos.quantity == pytest.approx(4.0)
    assert pos.avg_entry_price_usd == pytest.approx(530.0 / 7.0)


def test_backdated_sell_of_everything_leaves_no_position():
    trades = [_trade("sell", 2.0, 10.0, minutes=-1), _trade("buy", 2.0, 10.0, minutes=0)]
    assert compute_position(trades, "BTC") is None


def test_oversell_in_history_never_goes_negative():
    trades = [_trade("buy", 1.0, 10.0, minutes=0), _trade("sell", 5.0, 12.0, minutes=1)]
    assert compute_position(trades, "BTC") is None


def test_no_trades_no_position():
    assert compute_position([], "BTC") is None


def test_positions_per_symbol():
    trades = [
        _trade("buy", 1.0, 100.0, symbol="BTC", minutes=0),
        _trade("buy", 2.0, 10.0, symbol="ETH", minutes=1),
        _trade("sell", 2.0, 11.0, symbol="ETH", minutes=2),
        _trade("buy", 3.0, 1.0, symbol="ADA", minutes=3),
    ]
    positions = compute_positions(trades)
    assert set(positions) == {"BTC", "ADA"}
    assert positions["ADA"].quantity == 3.0


# --- Cash ---


def test_cash_balance_folds_adjustments_and_settlement():
    trades = [
        _trade("buy", 2.0, 100.0, fee=1.5, minutes=1),
        _trade("sell", 1.0, 150.0, fee=0.5, minutes=2),
    ]
    adjustments = [_cash("deposit", 1000.0, minutes=0), _cash("withdraw", 100.0, minutes=3)]
    expected = 1000.0 - (200.0 + 1.5) + (150.0 - 0.5) - 100.0
    assert compute_cash_balance(trades, adjustments) == pytest.approx(expected)


def test_cash_balance_order_independent():
    trades = [_trade("buy", 0.1, 0.3, minutes=1), _trade("sell", 0.1, 0.7, minutes=2)]
    adjustments = [_cash("deposit", 0.1, minutes=0), _cash("deposit", 0.2, minutes=3)]
    assert compute_cash_balance(trades, adjustments) == compute_cash_balance(
        list(reversed(trades)), list(reversed(adjustments))
    )


def test_deposit_then_equal_withdraw_is_exact():
    base = [_cash("deposit", 0.1, minutes=0), _cash("deposit", 0.2, minutes=1)]
    before = compute_cash_balance([], base)
    after = compute_cash_balance([], base + [_cash("deposit", 0.7, minutes=2), _cash("withdraw", 0.7, minutes=3)])
    assert after == before


def test_deposit_then_buy_spends_to_zero():
    trades = [_trade("buy", 1.0, 500.0, minutes=1)]
    assert compute_cash_balance(trades, [_cash("deposit", 500.0)]) == 0.0
    pos = compute_position(trades, "BTC")
    assert pos.quantity == 1.0
    assert pos.invested_usd == 500.0
