"""Tests for stats_api: wallet listing, stats, ghost portfolio, error mapping."""

from __future__ import annotations

import time
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from src.analytics.models import (
    AggregateFeed,
    FeedTrade,
    GhostPortfolioSummary,
    PortfolioSummary,
    Sector,
    Side,
    Tier,
    Trade,
    TraderStats,
    WatchedWallet,
)
from src.api.stats_api import app, get_repository, get_service
from src.db.database import create_db_engine, init_db, make_session_factory
from src.db.repository import WalletRepository
from src.exceptions import RateLimitError, WorkerError


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class FakeService:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.calls: list[tuple[str, bool]] = []
        self.feed_requests: list = []

    async def get_stats(self, wallet: WatchedWallet, force: bool = False) -> TraderStats:
        self.calls.append((wallet.id, force))
        if self.error:
            raise self.error
        return TraderStats.from_dict({
            "last_updated": int(time.time() * 1000),
            "win_rate": 75.0,
            "profit_factor": 3.0,
            "total_volume": 12000,
            "trade_count": 12,
            "specialty": "Politics",
            "badges": ["Sniper", "Hot Streak"],
            "recent_pnl": 420,
        })

    async def get_portfolio_summary(self, wallet: WatchedWallet) -> PortfolioSummary:
        if self.error:
            raise self.error
        return PortfolioSummary(
            total_value=Decimal("50"),
            total_cost_basis=Decimal("40"),
            unrealized_pnl=Decimal("10"),
            unrealized_pnl_percent=25.0,
            position_count=1,
        )

    async def get_aggregate_feed(self, wallets, sector=None) -> AggregateFeed:
        self.feed_requests.append(([w.id for w in wallets], sector))
        trades = [
            FeedTrade(
                trade=Trade(
                    id=f"t-{w.id}",
                    condition_id="0xabc",
                    outcome="YES",
                    side=Side.BUY,
                    size=Decimal("10"),
                    price=Decimal("0.5"),
                    usdc_amount=Decimal("5"),
                    timestamp=datetime(2026, 3, 1, tzinfo=timezone.utc),
                    market_title="Will Bitcoin hit 100k?",
                ),
                wallet_id=w.id,
                wallet_label=w.label,
                sector=Sector.CRYPTO,
            )
            for w in wallets
        ]
        counts = {s: 0 for s in Sector}
        counts[Sector.CRYPTO] = len(trades)
        return AggregateFeed(
            trades=trades, sector_counts=counts, new_trade_ids=[t.trade.id for t in trades[:1]],
        )

    async def get_ghost_portfolio(self, wallet: WatchedWallet) -> GhostPortfolioSummary:
        if self.error:
            raise self.error
        return GhostPortfolioSummary(
            wallet_id=wallet.id,
            wallet_label=wallet.label,
            ghost_started_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
            total_invested=Decimal("40"),
            unrealized_pnl=Decimal("10"),
            total_pnl=Decimal("10"),
            trade_count=1,
        )


@pytest.fixture()
def repository():
    engine = init_db(create_db_engine("sqlite://"))
    yield WalletRepository(make_session_factory(engine))
    engine.dispose()


@pytest.fixture()
def make_client(repository):
    def _make(service: FakeService) -> TestClient:
        app.dependency_overrides[get_repository] = lambda: repository
        app.dependency_overrides[get_service] = lambda: service
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_health(make_client):
    assert make_client(FakeService()).get("/health").json() == {"ok": True}


def test_list_wallets_with_tier_filter(make_client, repository):
    repository.add("0x" + "1" * 40)
    repository.add("0x" + "2" * 40, label="Insider", tier=Tier.FOLLOWING)
    client = make_client(FakeService())

    everything = client.get("/wallets").json()
    assert everything["count"] == 2

    following = client.get("/wallets", params={"tier": "following"}).json()
    assert [w["label"] for w in following["wallets"]] == ["Insider"]

    assert client.get("/wallets", params={"tier": "vip"}).status_code == 422


def test_stats_for_tracked_wallet(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    service = FakeService()
    client = make_client(service)

    resp = client.get(f"/wallets/{wallet.id}/stats", params={"refresh": "true"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["wallet"]["id"] == wallet.id
    assert body["stats"]["win_rate"] == 75.0
    assert body["stats"]["badges"] == ["Sniper", "Hot Streak"]
    assert len(body["stats"]["volume_history"]) == 7
    assert service.calls == [(wallet.id, True)]


def test_unknown_wallet_is_404(make_client):
    client = make_client(FakeService())
    assert client.get("/wallets/nope/stats").status_code == 404
    assert client.get("/wallets/nope/ghost").status_code == 404


def test_upstream_failure_maps_to_502(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    client = make_client(FakeService(error=RateLimitError("HTTP 429: rate limited", 429, "/trades")))

    resp = client.get(f"/wallets/{wallet.id}/stats")
    assert resp.status_code == 502
    assert "429" in resp.json()["detail"]


def test_worker_failure_maps_to_500(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    client = make_client(FakeService(error=WorkerError("boom")))
    assert client.get(f"/wallets/{wallet.id}/stats").status_code == 500


def test_ghost_portfolio(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    client = make_client(FakeService())

    body = client.get(f"/wallets/{wallet.id}/ghost").json()
    assert body["wallet_id"] == wallet.id
    assert body["total_invested"] == 40.0
    assert body["total_pnl"] == 10.0
    assert body["positions"] == []


def test_portfolio_summary(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    client = make_client(FakeService())

    body = client.get(f"/wallets/{wallet.id}/portfolio").json()
    assert body["wallet"]["id"] == wallet.id
    assert body["portfolio"]["total_value"] == 50.0
    assert body["portfolio"]["unrealized_pnl_percent"] == 25.0

    assert client.get("/wallets/nope/portfolio").status_code == 404


def test_portfolio_upstream_failure_maps_to_502(make_client, repository):
    wallet = repository.add("0x" + "1" * 40)
    client = make_client(FakeService(error=RateLimitError("HTTP 429: rate limited", 429, "/positions")))
    assert client.get(f"/wallets/{wallet.id}/portfolio").status_code == 502


def test_feed_across_tier_with_sector_filter(make_client, repository):
    repository.add("0x" + "1" * 40, label="Alice")
    insider = repository.add("0x" + "2" * 40, label="Insider", tier=Tier.FOLLOWING)
    service = FakeService()
    client = make_client(service)

    body = client.get("/feed", params={"tier": "following", "sector": "Crypto"}).json()

    assert service.feed_requests == [([insider.id], Sector.CRYPTO)]
    assert body["count"] == 1
    assert body["trades"][0]["wallet_label"] == "Insider"
    assert body["sector_counts"]["Crypto"] == 1
    assert body["new_trade_ids"] == [f"t-{insider.id}"]

    assert client.get("/feed", params={"sector": "Weather"}).status_code == 422
