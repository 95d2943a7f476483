#!/usr/bin/env python3
"""Trader stats report for a single Polymarket wallet.

Fetches recent trades from the Polymarket Data API, resolves held markets via
the CLOB, and prints win rate, profit factor, sector breakdown and badges.
Live position totals follow, then (optionally) a ghost portfolio replayed
from a start time.

Usage:
    python scripts/analyze_wallet.py --wallet 0x...
    python scripts/analyze_wallet.py --wallet 0x... --limit 500
    python scripts/analyze_wallet.py --wallet 0x... --ghost-since 2026-01-01T00:00:00Z
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

# Add project root to path for imports
_project_root = Path(__file__).parent.parent
sys.path.insert(0, str(_project_root))

import structlog

from config.settings import settings
from config.validators import validate_analytics_settings, validate_http_settings
from src.analytics.models import GhostPortfolioSummary, PortfolioSummary, TraderStats, WatchedWallet
from src.analytics.service import StatsService
from src.analytics.validation import is_valid_address
from src.analytics.worker import AnalyticsWorker
from src.db.database import create_db_engine, init_db, make_session_factory
from src.db.repository import WalletRepository
from src.exceptions import ConfigError, TrackerError
from src.feeds.data_api import PolymarketDataClient
from src.utils.formatting import (
    format_percent,
    format_relative_time,
    format_usd,
    format_win_rate,
    truncate_address,
)
from src.utils.logging import configure_logging
from src.utils.parsing import parse_timestamp

logger = structlog.get_logger()


def print_stats(wallet: WatchedWallet, stats: TraderStats) -> None:
    print(f"\n{'='*60}")
    print(f"{wallet.label}  ({truncate_address(wallet.address)})")
    print(f"{'='*60}")
    print(f"Trades:          {stats.trade_count}")
    print(f"Win Rate:        {format_win_rate(stats.win_rate)}")
    print(f"Profit Factor:   {stats.profit_factor:.2f}")
    print(f"Total Volume:    {format_usd(stats.total_volume)}")
    print(f"Net P&L:         {format_usd(stats.recent_pnl)}")
    print(f"Specialty:       {stats.specialty.value}")
    print(f"Badges:          {', '.join(b.value for b in stats.badges) or '-'}")

    print("\nSector breakdown:")
    for sector, sector_stats in stats.sector_breakdown.items():
        if sector_stats.trades == 0:
            continue
        print(f"  {sector.value:<14} {sector_stats.trades:>4} decided  "
              f"{format_win_rate(sector_stats.win_rate):>5}")

    print("\nVolume (last 7 days, oldest first):")
    print("  " + "  ".join(format_usd(v) for v in stats.volume_history))


def print_portfolio(summary: PortfolioSummary) -> None:
    print(f"\nOpen positions:  {summary.position_count}")
    print(f"Portfolio Value: {format_usd(summary.total_value)}")
    print(f"Unrealized P&L:  {format_usd(summary.unrealized_pnl)} "
          f"({format_percent(summary.unrealized_pnl_percent)})")


def print_ghost(portfolio: GhostPortfolioSummary) -> None:
    started = portfolio.ghost_started_at
    print(f"\n{'-'*60}")
    print(f"Ghost portfolio since {started.isoformat() if started else '-'}"
          f" ({format_relative_time(started) if started else 'not started'})")
    print(f"{'-'*60}")
    print(f"Trades copied:   {portfolio.trade_count}")
    print(f"Invested:        {format_usd(portfolio.total_invested)}")
    print(f"Returns:         {format_usd(portfolio.total_returns)}")
    print(f"Realized P&L:    {format_usd(portfolio.realized_pnl)}")
    print(f"Unrealized P&L:  {format_usd(portfolio.unrealized_pnl)}")
    print(f"Total P&L:       {format_usd(portfolio.total_pnl)}")
    for pos in portfolio.positions:
        pct = pos.unrealized_pnl / pos.total_cost * 100 if pos.total_cost > 0 else 0
        print(f"  {pos.market_title[:40]:<40} {pos.outcome:<5} "
              f"{float(pos.shares):>9.2f} sh  {format_percent(pct)}")


async def run(address: str, limit: int, ghost_since: Optional[str]) -> int:
    engine = init_db(create_db_engine("sqlite://"))
    repository = WalletRepository(make_session_factory(engine))
    wallet = repository.add(address)
    if ghost_since:
        started = parse_timestamp(ghost_since)
        if started is None:
            print(f"Invalid --ghost-since value: {ghost_since}", file=sys.stderr)
            return 2
        wallet = repository.toggle_ghost_mode(wallet.id, True, now=started)

    worker = AnalyticsWorker(max_workers=settings.ANALYTICS_WORKER_THREADS)
    try:
        async with PolymarketDataClient() as client:
            service = StatsService(repository, client, worker, trade_limit=limit)
            stats = await service.get_stats(wallet, force=True)
            print_stats(wallet, stats)
            print_portfolio(await service.get_portfolio_summary(wallet))
            if wallet.ghost_mode:
                print_ghost(await service.get_ghost_portfolio(wallet))
    except TrackerError as exc:
        logger.error("analyze_wallet_failed", address=address, error=str(exc))
        return 1
    finally:
        worker.shutdown()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Trader stats report for a Polymarket wallet",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--wallet", required=True, help="Wallet address (0x...)")
    parser.add_argument(
        "--limit", type=int, default=settings.TRADE_FETCH_LIMIT,
        help="Number of recent trades to analyze",
    )
    parser.add_argument(
        "--ghost-since", default=None,
        help="Replay a ghost portfolio from this time (ISO 8601 or epoch)",
    )
    args = parser.parse_args()

    if not is_valid_address(args.wallet):
        parser.error(f"not a wallet address: {args.wallet}")

    try:
        validate_http_settings()
        validate_analytics_settings()
    except ConfigError as exc:
        parser.error(str(exc))

    configure_logging()
    sys.exit(asyncio.run(run(args.wallet, args.limit, args.ghost_since)))


if __name__ == "__main__":
    main()
