"""Ghost portfolio: simulated copy-trading from the moment tracking began.

Only fills at or after ``wallet.ghost_started_at`` are replayed, so trades a
wallet made before ghost mode was switched on never leak into the simulated
P&L.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, localcontext
from typing import Mapping, Optional, Sequence

import structlog

from src.analytics.aggregator import group_trades, sum_sides
from src.analytics.models import (
    GhostPortfolioSummary,
    GhostPosition,
    Trade,
    WatchedWallet,
)
from src.analytics.sectors import detect_sector
from src.utils.parsing import MONEY_CONTEXT, ZERO

logger = structlog.get_logger()


def get_ghost_trades(wallet: WatchedWallet, trades: Sequence[Trade]) -> list[Trade]:
    """Trades made at or after the wallet's ghost start (empty when ghost mode is off)."""
    if not wallet.ghost_mode or wallet.ghost_started_at is None:
        return []
    start = wallet.ghost_started_at
    return [t for t in trades if t.timestamp >= start]


def empty_ghost_portfolio(wallet: WatchedWallet) -> GhostPortfolioSummary:
    return GhostPortfolioSummary(
        wallet_id=wallet.id,
        wallet_label=wallet.label,
        ghost_started_at=wallet.ghost_started_at,
    )


def build_ghost_portfolio(
    wallet: WatchedWallet,
    trades: Sequence[Trade],
    current_prices: Optional[Mapping[str, Decimal]] = None,
) -> GhostPortfolioSummary:
    """Replay post-start trades into simulated positions.

    Args:
        wallet: Tracked wallet; needs ``ghost_mode`` and ``ghost_started_at``.
        trades: The wallet's full trade history.
        current_prices: Live prices keyed by ``conditionId-outcome``. Positions
            without one are marked at their average entry (zero unrealized).
    """
    if not wallet.ghost_mode or wallet.ghost_started_at is None:
        return empty_ghost_portfolio(wallet)

    current_prices = current_prices or {}
    ghost_trades = get_ghost_trades(wallet, trades)

    positions: list[GhostPosition] = []
    total_invested = ZERO
    total_returns = ZERO
    realized_pnl = ZERO
    unrealized_pnl = ZERO

    with localcontext(MONEY_CONTEXT):
        for key, position_trades in group_trades(ghost_trades).items():
            first = position_trades[0]
            totals = sum_sides(position_trades)
            avg_entry = totals.avg_buy_price

            total_invested += totals.buy_value
            total_returns += totals.sell_value
            realized_pnl += totals.realized_pnl

            remaining = totals.remaining_shares
            price = current_prices.get(key)
            current_price = Decimal(str(price)) if price is not None else avg_entry
            current_value = remaining * current_price
            total_cost = remaining * avg_entry
            position_unrealized = current_value - total_cost

            if remaining > 0 or totals.sell_shares > 0:
                unrealized_pnl += position_unrealized
                positions.append(GhostPosition(
                    condition_id=first.condition_id,
                    outcome=first.outcome,
                    market_title=first.market_title,
                    sector=detect_sector(first.market_title),
                    shares=remaining,
                    avg_entry_price=avg_entry,
                    total_cost=total_cost,
                    current_value=current_value,
                    unrealized_pnl=position_unrealized,
                    trades=list(position_trades),
                ))

        summary = GhostPortfolioSummary(
            wallet_id=wallet.id,
            wallet_label=wallet.label,
            ghost_started_at=wallet.ghost_started_at,
            total_invested=total_invested,
            total_returns=total_returns,
            realized_pnl=realized_pnl,
            unrealized_pnl=unrealized_pnl,
            total_pnl=realized_pnl + unrealized_pnl,
            positions=positions,
            trade_count=len(ghost_trades),
        )

    logger.debug(
        "ghost_portfolio_built",
        wallet_id=wallet.id,
        trades=summary.trade_count,
        positions=len(positions),
    )
    return summary


def enable_ghost_mode(wallet: WatchedWallet, now: Optional[datetime] = None) -> WatchedWallet:
    """Return a copy with ghost mode on, starting now."""
    return replace(
        wallet,
        ghost_mode=True,
        ghost_started_at=now or datetime.now(timezone.utc),
    )


def disable_ghost_mode(wallet: WatchedWallet) -> WatchedWallet:
    """Return a copy with ghost mode off; the start timestamp is kept for history."""
    return replace(wallet, ghost_mode=False)
