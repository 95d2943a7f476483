"""Trade P&L analysis: win rate, profit factor, sector breakdown, volume series.

Positions are grouped by ``(condition_id, outcome)``. The matched buy/sell
portion of each position yields realized P&L. Shares still held count only
once the market has resolved: at $1 if the held outcome won, $0 otherwise.
Held shares in open, unknown or INVALID markets are left out of the win/loss
tally entirely.

Each decided leg (realized or resolved) is one win if its P&L is strictly
positive and one loss otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, localcontext
from typing import Mapping, Optional, Sequence

import structlog

from src.analytics.aggregator import group_trades, sum_sides
from src.analytics.models import (
    MarketResolutionInfo,
    ResolutionStatus,
    Sector,
    SectorStats,
    Trade,
    TradeAnalysis,
)
from src.analytics.sectors import detect_sector
from src.utils.parsing import MONEY_CONTEXT, ZERO

logger = structlog.get_logger()

# Reported when there are profits but no losses yet.
NO_LOSS_PROFIT_FACTOR = 10.0
VOLUME_HISTORY_DAYS = 7

_ONE = Decimal(1)


@dataclass(slots=True)
class _Tally:
    wins: int = 0
    losses: int = 0
    volume: Decimal = ZERO

    @property
    def decided(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return self.wins / self.decided * 100 if self.decided else 0.0


def empty_analysis() -> TradeAnalysis:
    return TradeAnalysis()


def analyze_trades(
    trades: Sequence[Trade],
    resolutions: Optional[Mapping[str, MarketResolutionInfo]] = None,
    *,
    now: Optional[datetime] = None,
) -> TradeAnalysis:
    """Compute trader statistics from a list of fills.

    Args:
        trades: Validated fills, any order.
        resolutions: Optional ``condition_id -> MarketResolutionInfo`` used to
            value shares still held at the end of the history.
        now: Reference time for the 7-day volume series (defaults to UTC now).
    """
    if not trades:
        return empty_analysis()

    resolutions = resolutions or {}
    with localcontext(MONEY_CONTEXT):
        sectors = {sector: _Tally() for sector in Sector}
        overall = _Tally()
        total_volume = ZERO
        gross_profit = ZERO
        gross_loss = ZERO

        def record(sector: Sector, pnl: Decimal) -> None:
            nonlocal gross_profit, gross_loss
            if pnl > 0:
                overall.wins += 1
                sectors[sector].wins += 1
                gross_profit += pnl
            else:
                overall.losses += 1
                sectors[sector].losses += 1
                gross_loss += abs(pnl)

        for position_trades in group_trades(trades).values():
            first = position_trades[0]
            sector = detect_sector(first.market_title)
            totals = sum_sides(position_trades)

            notional = totals.buy_value + totals.sell_value
            total_volume += notional
            sectors[sector].volume += notional

            if totals.buy_shares > 0 and totals.sell_shares > 0:
                record(sector, totals.realized_pnl)

            remaining = totals.remaining_shares
            if remaining <= 0:
                continue

            resolution = resolutions.get(first.condition_id)
            if resolution is None:
                continue
            if resolution.is_resolved:
                final_price = _ONE if resolution.winning_outcome == first.outcome else ZERO
                record(sector, (final_price - totals.avg_buy_price) * remaining)
            elif resolution.resolution_status is ResolutionStatus.INVALID:
                logger.debug(
                    "market_resolved_invalid",
                    condition_id=first.condition_id,
                    outcome=first.outcome,
                )

        if gross_loss > 0:
            profit_factor = float(gross_profit / gross_loss)
        elif gross_profit > 0:
            profit_factor = NO_LOSS_PROFIT_FACTOR
        else:
            profit_factor = 0.0

        specialty = Sector.OTHER
        max_volume = ZERO
        for sector, tally in sectors.items():
            if tally.volume > max_volume:
                max_volume = tally.volume
                specialty = sector

        return TradeAnalysis(
            win_rate=overall.win_rate,
            profit_factor=profit_factor,
            total_volume=total_volume,
            trade_count=len(trades),
            sector_breakdown={
                sector: SectorStats(trades=tally.decided, win_rate=tally.win_rate)
                for sector, tally in sectors.items()
            },
            specialty=specialty,
            # All-time net, not limited to the volume_history window.
            recent_pnl=gross_profit - gross_loss,
            volume_history=volume_history(trades, now=now),
        )


def volume_history(
    trades: Sequence[Trade],
    *,
    now: Optional[datetime] = None,
    days: int = VOLUME_HISTORY_DAYS,
) -> list[Decimal]:
    """Daily notional for the trailing ``days`` 24h windows, oldest first.

    Window ``i`` (counting back from ``now``) covers
    ``[now - (i+1)*24h, now - i*24h)``.
    """
    now = now or datetime.now(timezone.utc)
    day = timedelta(days=1)
    buckets: list[Decimal] = []
    with localcontext(MONEY_CONTEXT):
        for i in range(days - 1, -1, -1):
            start = now - (i + 1) * day
            end = now - i * day
            buckets.append(sum(
                (t.usdc_amount for t in trades if start <= t.timestamp < end),
                ZERO,
            ))
    return buckets
