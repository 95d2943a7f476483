"""Tests for StatsService: cache freshness, refresh flow, error propagation."""

from __future__ import annotations

import asyncio
import gc
import time
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.analytics.models import (
    MarketResolutionInfo,
    Position,
    ResolutionStatus,
    Sector,
    Side,
    Trade,
    TraderStats,
)
from src.analytics.service import StatsService
from src.analytics.worker import AnalyticsWorker
from src.db.database import create_db_engine, init_db, make_session_factory
from src.db.repository import WalletRepository
from src.exceptions import APIError

ADDRESS = "0x" + "c" * 40


def _trade(tid, side, size, price, condition_id="0xabc", outcome="YES", hours_ago=1):
    size, price = Decimal(size), Decimal(price)
    return Trade(
        id=tid,
        condition_id=condition_id,
        outcome=outcome,
        side=Side(side),
        size=size,
        price=price,
        usdc_amount=size * price,
        timestamp=datetime.now(timezone.utc) - timedelta(hours=hours_ago),
        market_title="Will Solana flip Ethereum?",
    )


class FakeClient:
    """Stands in for PolymarketDataClient."""

    def __init__(self, trades=None, resolutions=None, positions=None, error=None, by_address=None):
        self.trades = trades or []
        self.by_address = by_address or {}
        self.resolutions = resolutions or {}
        self.positions = positions or []
        self.error = error
        self.trade_calls = 0
        self.resolution_requests: list[list[str]] = []

    async def fetch_trades(self, address, limit=100):
        self.trade_calls += 1
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return list(self.trades)

    async def fetch_resolutions(self, condition_ids):
        ids = list(condition_ids)
        self.resolution_requests.append(ids)
        return {cid: self.resolutions[cid] for cid in ids if cid in self.resolutions}

    async def fetch_positions(self, address):
        return list(self.positions)

    async def fetch_trades_for_wallets(self, addresses, limit=100):
        return {a: list(self.by_address[a]) for a in addresses if a in self.by_address}


@pytest.fixture
def repository():
    engine = init_db(create_db_engine("sqlite://"))
    yield WalletRepository(make_session_factory(engine))
    engine.dispose()


@pytest.fixture
def worker():
    w = AnalyticsWorker()
    yield w
    w.shutdown()


def _round_trip():
    return [
        _trade("1", "BUY", "10", "0.4"),
        _trade("2", "SELL", "10", "0.6"),
    ]


@pytest.mark.asyncio
async def test_get_stats_computes_and_caches(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(trades=_round_trip())
    service = StatsService(repository, client, worker)

    stats = await service.get_stats(wallet)

    assert stats.win_rate == 100.0
    assert stats.profit_factor == 10.0
    assert stats.recent_pnl == Decimal("2")
    assert repository.get_stats(wallet.id) is not None
    assert repository.get(wallet.id).last_synced_at is not None

    again = await service.get_stats(wallet)
    assert again.last_updated == stats.last_updated
    assert client.trade_calls == 1


@pytest.mark.asyncio
async def test_stale_cache_is_recomputed(repository, worker):
    wallet = repository.add(ADDRESS)
    seven_hours_ago = int(time.time() * 1000) - 7 * 60 * 60 * 1000
    repository.save_stats(wallet.id, TraderStats.from_dict({"last_updated": seven_hours_ago}))
    client = FakeClient(trades=_round_trip())
    service = StatsService(repository, client, worker)

    stats = await service.get_stats(wallet)

    assert client.trade_calls == 1
    assert stats.last_updated > seven_hours_ago


@pytest.mark.asyncio
async def test_force_bypasses_fresh_cache(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(trades=_round_trip())
    service = StatsService(repository, client, worker)

    await service.get_stats(wallet)
    await service.get_stats(wallet, force=True)
    assert client.trade_calls == 2


@pytest.mark.asyncio
async def test_concurrent_refreshes_fetch_once(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(trades=_round_trip())
    service = StatsService(repository, client, worker)

    first, second = await asyncio.gather(service.get_stats(wallet), service.get_stats(wallet))

    assert client.trade_calls == 1
    assert first.last_updated == second.last_updated


@pytest.mark.asyncio
async def test_wallet_locks_are_released_after_refresh(repository, worker):
    wallet = repository.add(ADDRESS)
    service = StatsService(repository, FakeClient(trades=_round_trip()), worker)

    await asyncio.gather(service.get_stats(wallet), service.get_stats(wallet, force=True))
    gc.collect()

    assert wallet.id not in service._locks


@pytest.mark.asyncio
async def test_resolutions_requested_for_held_markets_only(repository, worker):
    wallet = repository.add(ADDRESS)
    trades = _round_trip() + [_trade("3", "BUY", "100", "0.3", condition_id="0xheld")]
    resolutions = {"0xheld": MarketResolutionInfo(
        condition_id="0xheld",
        is_closed=True,
        winning_outcome="NO",
        resolution_status=ResolutionStatus.RESOLVED,
    )}
    client = FakeClient(trades=trades, resolutions=resolutions)
    service = StatsService(repository, client, worker)

    stats = await service.get_stats(wallet)

    assert client.resolution_requests == [["0xheld"]]
    assert stats.win_rate == 50.0
    assert stats.recent_pnl == Decimal("-28")


@pytest.mark.asyncio
async def test_upstream_failure_propagates_and_caches_nothing(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(error=APIError("HTTP 503: Service Unavailable", 503, "/trades"))
    service = StatsService(repository, client, worker)

    with pytest.raises(APIError):
        await service.get_stats(wallet)
    assert repository.get_stats(wallet.id) is None


@pytest.mark.asyncio
async def test_ghost_portfolio_uses_live_position_prices(repository, worker):
    wallet = repository.add(ADDRESS)
    started = datetime.now(timezone.utc) - timedelta(hours=2)
    wallet = repository.toggle_ghost_mode(wallet.id, True, now=started)
    trades = [
        _trade("old", "BUY", "500", "0.2", hours_ago=5),
        _trade("new", "BUY", "100", "0.4", hours_ago=1),
    ]
    position = Position(
        id="0xabc-0",
        wallet_address=ADDRESS,
        proxy_wallet=ADDRESS,
        condition_id="0xabc",
        market_slug="sol-eth",
        market_title="Will Solana flip Ethereum?",
        outcome="YES",
        token_id="1",
        size=Decimal("600"),
        avg_entry_price=Decimal("0.23"),
        current_price=Decimal("0.55"),
        cost_basis=Decimal("138"),
        current_value=Decimal("330"),
        unrealized_pnl=Decimal("192"),
        unrealized_pnl_percent=Decimal("139"),
    )
    service = StatsService(repository, FakeClient(trades=trades, positions=[position]), worker)

    summary = await service.get_ghost_portfolio(wallet)

    assert summary.trade_count == 1
    assert summary.total_invested == Decimal("40")
    assert summary.unrealized_pnl == Decimal("15")


@pytest.mark.asyncio
async def test_ghost_portfolio_empty_when_disabled(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(trades=_round_trip())
    service = StatsService(repository, client, worker)

    summary = await service.get_ghost_portfolio(wallet)
    assert summary.trade_count == 0
    assert client.trade_calls == 0


@pytest.mark.asyncio
async def test_portfolio_summary_from_live_positions(repository, worker):
    wallet = repository.add(ADDRESS)
    position = Position(
        id="0xabc-0",
        wallet_address=ADDRESS,
        proxy_wallet=ADDRESS,
        condition_id="0xabc",
        market_slug="sol-eth",
        market_title="Will Solana flip Ethereum?",
        outcome="YES",
        token_id="1",
        size=Decimal("100"),
        avg_entry_price=Decimal("0.4"),
        current_price=Decimal("0.5"),
        cost_basis=Decimal("40"),
        current_value=Decimal("50"),
        unrealized_pnl=Decimal("10"),
        unrealized_pnl_percent=Decimal("25"),
    )
    service = StatsService(repository, FakeClient(positions=[position]), worker)

    summary = await service.get_portfolio_summary(wallet)

    assert summary.total_value == Decimal("50")
    assert summary.unrealized_pnl_percent == 25.0
    assert summary.position_count == 1


@pytest.mark.asyncio
async def test_aggregate_feed_flags_trades_after_first_poll(repository, worker):
    alice = repository.add(ADDRESS, label="Alice")
    bob = repository.add("0x" + "d" * 40, label="Bob")
    failed = repository.add("0x" + "e" * 40, label="Offline")
    client = FakeClient(by_address={
        alice.address: [_trade("a1", "BUY", "10", "0.4", hours_ago=3)],
        bob.address: [_trade("b1", "SELL", "5", "0.6", hours_ago=2)],
    })
    service = StatsService(repository, client, worker)

    first = await service.get_aggregate_feed([alice, bob, failed])
    assert [t.trade.id for t in first.trades] == ["b1", "a1"]
    assert first.new_trade_ids == []
    assert first.sector_counts[Sector.CRYPTO] == 2

    client.by_address[alice.address].append(_trade("a2", "BUY", "1", "0.5", hours_ago=1))
    second = await service.get_aggregate_feed([alice, bob, failed])

    assert [t.trade.id for t in second.trades] == ["a2", "b1", "a1"]
    assert second.new_trade_ids == ["a2"]
    assert {t.wallet_label for t in second.trades} == {"Alice", "Bob"}


@pytest.mark.asyncio
async def test_aggregate_feed_sector_filter_keeps_full_counts(repository, worker):
    wallet = repository.add(ADDRESS)
    client = FakeClient(by_address={wallet.address: _round_trip()})
    service = StatsService(repository, client, worker)

    feed = await service.get_aggregate_feed([wallet], sector=Sector.POLITICS)

    assert feed.trades == []
    assert feed.sector_counts[Sector.CRYPTO] == 2


@pytest.mark.asyncio
async def test_aggregate_feed_without_wallets(repository, worker):
    service = StatsService(repository, FakeClient(), worker)
    feed = await service.get_aggregate_feed([])
    assert feed.trades == []
    assert feed.new_trade_ids == []
