"""Achievement badges derived from a TradeAnalysis."""

from __future__ import annotations

from decimal import Decimal

from src.analytics.models import TradeAnalysis, TraderBadge

WHALE_MIN_VOLUME = Decimal(100_000)
SNIPER_MIN_WIN_RATE = 65.0
SNIPER_MIN_TRADES = 10
HIGH_VOLUME_MIN_TRADES = 50
HOT_STREAK_MIN_WIN_RATE = 70.0
HOT_STREAK_MIN_TRADES = 5
SPECIALIST_MIN_SECTOR_TRADES = 10


def assign_badges(analysis: TradeAnalysis) -> list[TraderBadge]:
    """Evaluate every badge rule independently.

    ``trade_count`` thresholds use the raw fill count, while the specialist
    rule counts decided positions in the specialty sector.
    """
    badges: list[TraderBadge] = []

    if analysis.total_volume >= WHALE_MIN_VOLUME:
        badges.append(TraderBadge.WHALE)
    if analysis.win_rate >= SNIPER_MIN_WIN_RATE and analysis.trade_count >= SNIPER_MIN_TRADES:
        badges.append(TraderBadge.SNIPER)
    if analysis.trade_count >= HIGH_VOLUME_MIN_TRADES:
        badges.append(TraderBadge.HIGH_VOLUME)
    if analysis.win_rate >= HOT_STREAK_MIN_WIN_RATE and analysis.trade_count >= HOT_STREAK_MIN_TRADES:
        badges.append(TraderBadge.HOT_STREAK)

    specialty_stats = analysis.sector_breakdown.get(analysis.specialty)
    if specialty_stats is not None and specialty_stats.trades >= SPECIALIST_MIN_SECTOR_TRADES:
        badges.append(TraderBadge.SPECIALIST)

    return badges
