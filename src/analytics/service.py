"""Stats refresh flow: cache lookup, fetch, off-thread analysis, persist."""

from __future__ import annotations

import asyncio
import time
import weakref
from typing import Optional, Sequence

import structlog

from config.settings import settings
from src.analytics.aggregator import held_condition_ids
from src.analytics.feed import NewTradeDetector, build_aggregate_feed, filter_feed, sector_counts
from src.analytics.ghost import build_ghost_portfolio, empty_ghost_portfolio
from src.analytics.models import (
    AggregateFeed,
    GhostPortfolioSummary,
    PortfolioSummary,
    Sector,
    TraderStats,
    WatchedWallet,
)
from src.analytics.portfolio import summarize_positions
from src.analytics.worker import AnalyticsWorker
from src.db.repository import WalletRepository
from src.feeds.data_api import PolymarketDataClient

logger = structlog.get_logger()


class StatsService:
    """Serves per-wallet TraderStats, recomputing when the cache is stale.

    Concurrent refreshes of the same wallet are serialized so only one
    fetch/analyze cycle runs at a time. Upstream and worker failures
    propagate to the caller; nothing is cached on failure.
    """

    def __init__(
        self,
        repository: WalletRepository,
        client: PolymarketDataClient,
        worker: AnalyticsWorker,
        *,
        detector: Optional[NewTradeDetector] = None,
        stale_hours: float = settings.STATS_STALE_HOURS,
        trade_limit: int = settings.TRADE_FETCH_LIMIT,
    ):
        self.repository = repository
        self.client = client
        self.worker = worker
        self.detector = detector or NewTradeDetector()
        self.stale_hours = stale_hours
        self.trade_limit = trade_limit
        # Entries vanish once no caller holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _fresh_cached(self, wallet_id: str) -> Optional[TraderStats]:
        cached = self.repository.get_stats(wallet_id)
        if cached is not None and not cached.is_stale(max_age_hours=self.stale_hours):
            return cached
        return None

    async def get_stats(self, wallet: WatchedWallet, force: bool = False) -> TraderStats:
        if not force:
            cached = self._fresh_cached(wallet.id)
            if cached is not None:
                return cached

        lock = self._locks.get(wallet.id)
        if lock is None:
            lock = self._locks[wallet.id] = asyncio.Lock()
        async with lock:
            if not force:
                # Another caller may have refreshed while we waited.
                cached = self._fresh_cached(wallet.id)
                if cached is not None:
                    return cached
            stats = await self._compute(wallet)
            self.repository.save_stats(wallet.id, stats)
            if self.repository.get(wallet.id) is not None:
                self.repository.update_last_synced(wallet.id)
            return stats

    async def _compute(self, wallet: WatchedWallet) -> TraderStats:
        started = time.monotonic()
        trades = await self.client.fetch_trades(wallet.address, self.trade_limit)
        resolutions = await self.client.fetch_resolutions(held_condition_ids(trades))
        result = await self.worker.analyze(trades, resolutions)
        stats = TraderStats.from_dict({**result, "last_updated": int(time.time() * 1000)})

        logger.info(
            "stats_refreshed",
            wallet_id=wallet.id,
            trades=len(trades),
            resolutions=len(resolutions),
            win_rate=round(stats.win_rate, 1),
            badges=[b.value for b in stats.badges],
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return stats

    async def get_ghost_portfolio(self, wallet: WatchedWallet) -> GhostPortfolioSummary:
        """Simulated copy-trading P&L since ghost mode was enabled."""
        if not wallet.ghost_mode or wallet.ghost_started_at is None:
            return empty_ghost_portfolio(wallet)

        trades, positions = await asyncio.gather(
            self.client.fetch_trades(wallet.address, self.trade_limit),
            self.client.fetch_positions(wallet.address),
        )
        prices = {p.position_key: p.current_price for p in positions}
        return build_ghost_portfolio(wallet, trades, prices)

    async def get_portfolio_summary(self, wallet: WatchedWallet) -> PortfolioSummary:
        positions = await self.client.fetch_positions(wallet.address)
        return summarize_positions(positions)

    async def get_aggregate_feed(
        self, wallets: Sequence[WatchedWallet], sector: Optional[Sector] = None,
    ) -> AggregateFeed:
        """Merged trades of all ``wallets``, flagging fills newer than the last poll.

        Sector counts always cover the whole feed so a filtered view can still
        show how many fills sit in every other sector.
        """
        if not wallets:
            return AggregateFeed()

        by_address = await self.client.fetch_trades_for_wallets(
            [w.address for w in wallets], self.trade_limit,
        )

        new_ids: list[str] = []
        for wallet in wallets:
            trades = by_address.get(wallet.address)
            if trades is None:
                continue
            fresh = self.detector.detect(wallet.address, trades)
            if fresh:
                logger.info(
                    "new_trades_detected",
                    wallet_id=wallet.id,
                    label=wallet.label,
                    count=len(fresh),
                )
                new_ids.extend(t.id for t in fresh)

        feed = build_aggregate_feed(wallets, by_address)
        return AggregateFeed(
            trades=filter_feed(feed, sector),
            sector_counts=sector_counts(feed),
            new_trade_ids=new_ids,
        )
