"""Totals over a wallet's live positions."""

from __future__ import annotations

from decimal import localcontext
from typing import Sequence

from src.analytics.models import PortfolioSummary, Position
from src.utils.parsing import MONEY_CONTEXT, ZERO


def summarize_positions(positions: Sequence[Position]) -> PortfolioSummary:
    """Total value, cost basis and unrealized P&L (percent of cost basis)."""
    with localcontext(MONEY_CONTEXT):
        total_value = sum((p.current_value for p in positions), ZERO)
        cost_basis = sum((p.cost_basis for p in positions), ZERO)
        pnl = sum((p.unrealized_pnl for p in positions), ZERO)
        percent = float(pnl / cost_basis * 100) if cost_basis > 0 else 0.0

    return PortfolioSummary(
        total_value=total_value,
        total_cost_basis=cost_basis,
        unrealized_pnl=pnl,
        unrealized_pnl_percent=percent,
        position_count=len(positions),
    )
