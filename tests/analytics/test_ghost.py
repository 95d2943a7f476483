"""Tests for the ghost (simulated copy-trading) portfolio."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from src.analytics.ghost import (
    build_ghost_portfolio,
    disable_ghost_mode,
    enable_ghost_mode,
    get_ghost_trades,
)
from src.analytics.models import Sector, Side, Trade, WatchedWallet

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _wallet(ghost_mode: bool = True) -> WatchedWallet:
    return WatchedWallet(
        id="w1",
        address="0x" + "1" * 40,
        label="Trader 1",
        ghost_mode=ghost_mode,
        ghost_started_at=START if ghost_mode else None,
    )


def _trade(tid, side, size, price, ts, outcome="YES", condition_id="0xabc"):
    size, price = Decimal(size), Decimal(price)
    return Trade(
        id=tid,
        condition_id=condition_id,
        outcome=outcome,
        side=Side(side),
        size=size,
        price=price,
        usdc_amount=size * price,
        timestamp=ts,
        market_title="Will Ethereum flip Bitcoin?",
    )


class TestGhostTradeFilter:
    def test_start_boundary_is_inclusive(self):
        at_start = _trade("a", "BUY", "10", "0.5", START)
        just_before = _trade("b", "BUY", "10", "0.5", START - timedelta(milliseconds=1))

        assert get_ghost_trades(_wallet(), [at_start, just_before]) == [at_start]

    def test_no_trades_when_ghost_mode_off(self):
        trades = [_trade("a", "BUY", "10", "0.5", START + timedelta(hours=1))]
        assert get_ghost_trades(_wallet(ghost_mode=False), trades) == []


class TestBuildGhostPortfolio:
    def test_marks_open_position_at_current_price(self):
        trades = [_trade("a", "BUY", "100", "0.4", START + timedelta(minutes=5))]
        summary = build_ghost_portfolio(_wallet(), trades, {"0xabc-YES": Decimal("0.5")})

        assert summary.trade_count == 1
        assert summary.total_invested == Decimal("40")
        assert summary.unrealized_pnl == Decimal("10")
        assert summary.total_pnl == Decimal("10")
        pos = summary.positions[0]
        assert pos.shares == Decimal("100")
        assert pos.current_value == Decimal("50")
        assert pos.sector is Sector.CRYPTO

    def test_ignores_trades_before_start(self):
        trades = [
            _trade("old", "BUY", "1000", "0.1", START - timedelta(days=1)),
            _trade("new", "BUY", "10", "0.5", START + timedelta(hours=1)),
        ]
        summary = build_ghost_portfolio(_wallet(), trades)

        assert summary.trade_count == 1
        assert summary.total_invested == Decimal("5")

    def test_missing_price_falls_back_to_entry(self):
        trades = [_trade("a", "BUY", "10", "0.3", START)]
        summary = build_ghost_portfolio(_wallet(), trades, {})
        assert summary.unrealized_pnl == 0
        assert summary.positions[0].current_value == Decimal("3")

    def test_realized_pnl_from_round_trip(self):
        trades = [
            _trade("a", "BUY", "10", "0.4", START),
            _trade("b", "SELL", "10", "0.7", START + timedelta(hours=2)),
        ]
        summary = build_ghost_portfolio(_wallet(), trades, {"0xabc-YES": 0.9})

        assert summary.total_returns == Decimal("7")
        assert summary.realized_pnl == Decimal("3")
        assert summary.unrealized_pnl == 0
        # Closed positions with sells are still listed.
        assert len(summary.positions) == 1
        assert summary.positions[0].shares == 0

    def test_disabled_wallet_gets_empty_summary(self):
        trades = [_trade("a", "BUY", "10", "0.4", START)]
        summary = build_ghost_portfolio(_wallet(ghost_mode=False), trades)

        assert summary.trade_count == 0
        assert summary.positions == []
        assert summary.total_pnl == 0


def test_enable_and_disable_ghost_mode():
    wallet = _wallet(ghost_mode=False)
    enabled = enable_ghost_mode(wallet, now=START)
    assert enabled.ghost_mode is True
    assert enabled.ghost_started_at == START
    assert wallet.ghost_mode is False

    disabled = disable_ghost_mode(enabled)
    assert disabled.ghost_mode is False
    assert disabled.ghost_started_at == START
