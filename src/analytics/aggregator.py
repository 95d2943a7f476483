"""Group fills into per-(market, outcome) positions."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from src.analytics.models import Side, Trade, position_key
from src.utils.parsing import ZERO

__all__ = ["PositionTotals", "group_trades", "held_condition_ids", "position_key", "sum_sides"]


@dataclass(slots=True)
class PositionTotals:
    """Summed BUY and SELL legs of one grouped position."""

    buy_shares: Decimal = ZERO
    buy_value: Decimal = ZERO
    sell_shares: Decimal = ZERO
    sell_value: Decimal = ZERO

    @property
    def remaining_shares(self) -> Decimal:
        return self.buy_shares - self.sell_shares

    @property
    def avg_buy_price(self) -> Decimal:
        if self.buy_shares <= 0:
            return ZERO
        return self.buy_value / self.buy_shares

    @property
    def avg_sell_price(self) -> Decimal:
        if self.sell_shares <= 0:
            return ZERO
        return self.sell_value / self.sell_shares

    @property
    def closed_shares(self) -> Decimal:
        return min(self.buy_shares, self.sell_shares)

    @property
    def realized_pnl(self) -> Decimal:
        """P&L on the matched portion; zero unless both sides traded."""
        if self.buy_shares <= 0 or self.sell_shares <= 0:
            return ZERO
        return (self.avg_sell_price - self.avg_buy_price) * self.closed_shares


def group_trades(trades: Iterable[Trade]) -> dict[str, list[Trade]]:
    """Group trades by ``conditionId-outcome``, preserving first-seen order."""
    grouped: dict[str, list[Trade]] = defaultdict(list)
    for trade in trades:
        grouped[position_key(trade.condition_id, trade.outcome)].append(trade)
    return dict(grouped)


def sum_sides(trades: Iterable[Trade]) -> PositionTotals:
    totals = PositionTotals()
    for trade in trades:
        if trade.side == Side.BUY:
            totals.buy_shares += trade.size
            totals.buy_value += trade.usdc_amount
        else:
            totals.sell_shares += trade.size
            totals.sell_value += trade.usdc_amount
    return totals


def held_condition_ids(trades: Iterable[Trade]) -> list[str]:
    """Markets where some outcome still has shares held, in first-seen order."""
    held: dict[str, None] = {}
    for position_trades in group_trades(trades).values():
        if sum_sides(position_trades).remaining_shares > 0:
            held[position_trades[0].condition_id] = None
    return list(held)
