# tests/analytics/test_aggregator.py
from datetime import datetime, timezone
from decimal import Decimal

from src.analytics.aggregator import group_trades, held_condition_ids, sum_sides
from src.analytics.models import Side, Trade

TS = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _trade(tid, side, size, price, condition_id="0xa", outcome="YES"):
    size, price = Decimal(size), Decimal(price)
    return Trade(
        id=tid,
        condition_id=condition_id,
        outcome=outcome,
        side=Side(side),
        size=size,
        price=price,
        usdc_amount=size * price,
        timestamp=TS,
    )


def test_group_trades_keys_by_condition_and_outcome():
    trades = [
        _trade("1", "BUY", "10", "0.4", "0xa", "YES"),
        _trade("2", "BUY", "10", "0.6", "0xa", "NO"),
        _trade("3", "SELL", "5", "0.5", "0xa", "YES"),
        _trade("4", "BUY", "1", "0.1", "0xb", "YES"),
    ]
    grouped = group_trades(trades)

    assert list(grouped) == ["0xa-YES", "0xa-NO", "0xb-YES"]
    assert [t.id for t in grouped["0xa-YES"]] == ["1", "3"]


def test_sum_sides_partial_close():
    totals = sum_sides([
        _trade("1", "BUY", "10", "0.4"),
        _trade("2", "SELL", "4", "0.6"),
    ])

    assert totals.buy_shares == Decimal("10")
    assert totals.sell_value == Decimal("2.4")
    assert totals.avg_buy_price == Decimal("0.4")
    assert totals.avg_sell_price == Decimal("0.6")
    assert totals.closed_shares == Decimal("4")
    assert totals.remaining_shares == Decimal("6")
    assert totals.realized_pnl == Decimal("0.8")


def test_realized_pnl_needs_both_sides():
    assert sum_sides([_trade("1", "BUY", "10", "0.4")]).realized_pnl == 0
    assert sum_sides([_trade("1", "SELL", "10", "0.4")]).realized_pnl == 0
    assert sum_sides([]).avg_buy_price == 0


def test_held_condition_ids_skips_closed_positions():
    trades = [
        _trade("1", "BUY", "10", "0.4", "0xa"),
        _trade("2", "SELL", "10", "0.5", "0xa"),
        _trade("3", "BUY", "5", "0.2", "0xb", "NO"),
        _trade("4", "BUY", "5", "0.3", "0xc"),
        _trade("5", "BUY", "5", "0.7", "0xc", "NO"),
    ]
    assert held_condition_ids(trades) == ["0xb", "0xc"]
