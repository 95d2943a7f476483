"""Trader analytics: P&L analysis, badges, sectors, the ghost portfolio and the feed."""

from .badges import assign_badges
from .feed import NewTradeDetector, build_aggregate_feed, filter_feed, sector_counts
from .ghost import build_ghost_portfolio, disable_ghost_mode, enable_ghost_mode, get_ghost_trades
from .models import (
    AggregateFeed,
    FeedTrade,
    GhostPortfolioSummary,
    GhostPosition,
    MarketResolutionInfo,
    PortfolioSummary,
    Position,
    ResolutionStatus,
    Sector,
    SectorStats,
    Side,
    Tier,
    Trade,
    TradeAnalysis,
    TraderBadge,
    TraderStats,
    WatchedWallet,
)
from .pnl import analyze_trades, empty_analysis
from .portfolio import summarize_positions
from .sectors import detect_sector
from .validation import parse_trades, safe_parse_trades

__all__ = [
    "AggregateFeed",
    "FeedTrade",
    "GhostPortfolioSummary",
    "GhostPosition",
    "MarketResolutionInfo",
    "NewTradeDetector",
    "PortfolioSummary",
    "Position",
    "ResolutionStatus",
    "Sector",
    "SectorStats",
    "Side",
    "Tier",
    "Trade",
    "TradeAnalysis",
    "TraderBadge",
    "TraderStats",
    "WatchedWallet",
    "analyze_trades",
    "assign_badges",
    "build_aggregate_feed",
    "build_ghost_portfolio",
    "detect_sector",
    "disable_ghost_mode",
    "empty_analysis",
    "enable_ghost_mode",
    "filter_feed",
    "get_ghost_trades",
    "parse_trades",
    "safe_parse_trades",
    "sector_counts",
    "summarize_positions",
]
