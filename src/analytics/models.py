"""Domain types for trader analytics and the ghost portfolio.

Every money or share quantity is a ``Decimal``. ``as_dict()`` helpers render
JSON-friendly payloads (floats, enum values) for the worker protocol, the
stats cache and the HTTP API.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from src.utils.parsing import ZERO, to_decimal

MILLIS_PER_HOUR = 60 * 60 * 1000


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class Sector(str, Enum):
    """Market sectors, in classification precedence order."""

    POLITICS = "Politics"
    CRYPTO = "Crypto"
    SPORTS = "Sports"
    BUSINESS = "Business"
    ENTERTAINMENT = "Entertainment"
    OTHER = "Other"


class TraderBadge(str, Enum):
    WHALE = "Whale"
    SNIPER = "Sniper"
    HIGH_VOLUME = "High Volume"
    HOT_STREAK = "Hot Streak"
    SPECIALIST = "Specialist"


class ResolutionStatus(str, Enum):
    RESOLVED = "RESOLVED"
    INVALID = "INVALID"  # voids P&L attribution
    OPEN = "OPEN"


class RedemptionStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RESOLVED = "RESOLVED"
    REDEEMED = "REDEEMED"


class Tier(str, Enum):
    """Following = inner circle (instant alerts), watchlist = radar."""

    FOLLOWING = "following"
    WATCHLIST = "watchlist"


def position_key(condition_id: str, outcome: str) -> str:
    return f"{condition_id}-{outcome}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: Decimal) -> float:
    return float(value)


# ---------------------------------------------------------------------------
# Trades, positions, resolutions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Trade:
    """A single immutable fill for one (market, outcome)."""

    id: str
    condition_id: str
    outcome: str
    side: Side
    size: Decimal
    price: Decimal
    usdc_amount: Decimal
    timestamp: datetime
    market_title: str = ""
    market_slug: str = ""
    wallet_address: str = ""
    tx_hash: str = ""
    block_number: int = 0

    @property
    def position_key(self) -> str:
        return position_key(self.condition_id, self.outcome)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "condition_id": self.condition_id,
            "outcome": self.outcome,
            "side": self.side.value,
            "size": _money(self.size),
            "price": _money(self.price),
            "usdc_amount": _money(self.usdc_amount),
            "timestamp": self.timestamp.isoformat(),
            "market_title": self.market_title,
            "market_slug": self.market_slug,
            "wallet_address": self.wallet_address,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
        }


@dataclass(slots=True)
class Position:
    """Live holdings for one (wallet, market, outcome), as reported upstream."""

    id: str
    wallet_address: str
    proxy_wallet: str
    condition_id: str
    market_slug: str
    market_title: str
    outcome: str
    token_id: str
    size: Decimal
    avg_entry_price: Decimal
    current_price: Decimal
    cost_basis: Decimal
    current_value: Decimal
    unrealized_pnl: Decimal
    unrealized_pnl_percent: Decimal
    redemption_status: RedemptionStatus = RedemptionStatus.ACTIVE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    sector: Optional[Sector] = None

    @property
    def position_key(self) -> str:
        return position_key(self.condition_id, self.outcome)


@dataclass(frozen=True, slots=True)
class MarketResolutionInfo:
    condition_id: str
    is_closed: bool
    winning_outcome: Optional[str] = None
    resolution_status: ResolutionStatus = ResolutionStatus.OPEN

    @property
    def is_resolved(self) -> bool:
        return self.is_closed and self.resolution_status is ResolutionStatus.RESOLVED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MarketResolutionInfo:
        """Build from a camelCase or snake_case mapping."""
        status = data.get("resolution_status", data.get("resolutionStatus"))
        return cls(
            condition_id=str(data.get("condition_id", data.get("conditionId", ""))),
            is_closed=bool(data.get("is_closed", data.get("isClosed", False))),
            winning_outcome=data.get("winning_outcome", data.get("winningOutcome")),
            resolution_status=ResolutionStatus(status) if status else ResolutionStatus.OPEN,
        )


# ---------------------------------------------------------------------------
# Analysis output
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SectorStats:
    trades: int = 0  # decided positions, not fills
    win_rate: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {"trades": self.trades, "win_rate": self.win_rate}


def empty_sector_breakdown() -> dict[Sector, SectorStats]:
    return {sector: SectorStats() for sector in Sector}


@dataclass(slots=True)
class TradeAnalysis:
    win_rate: float = 0.0
    profit_factor: float = 0.0
    total_volume: Decimal = ZERO
    trade_count: int = 0
    sector_breakdown: dict[Sector, SectorStats] = field(default_factory=empty_sector_breakdown)
    specialty: Sector = Sector.OTHER
    recent_pnl: Decimal = ZERO
    volume_history: list[Decimal] = field(default_factory=lambda: [ZERO] * 7)

    def as_dict(self) -> dict[str, Any]:
        return {
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "total_volume": _money(self.total_volume),
            "trade_count": self.trade_count,
            "sector_breakdown": {
                sector.value: stats.as_dict()
                for sector, stats in self.sector_breakdown.items()
            },
            "specialty": self.specialty.value,
            "recent_pnl": _money(self.recent_pnl),
            "volume_history": [_money(v) for v in self.volume_history],
        }


@dataclass(slots=True)
class TraderStats:
    """Cached analytics for one wallet (``last_updated`` in epoch millis)."""

    last_updated: int
    win_rate: float
    profit_factor: float
    total_volume: Decimal
    trade_count: int
    specialty: Sector
    sector_breakdown: dict[Sector, SectorStats]
    badges: list[TraderBadge]
    recent_pnl: Decimal
    volume_history: list[Decimal]

    @classmethod
    def from_analysis(
        cls,
        analysis: TradeAnalysis,
        badges: list[TraderBadge],
        last_updated: Optional[int] = None,
    ) -> TraderStats:
        return cls(
            last_updated=last_updated if last_updated is not None else int(time.time() * 1000),
            win_rate=analysis.win_rate,
            profit_factor=analysis.profit_factor,
            total_volume=analysis.total_volume,
            trade_count=analysis.trade_count,
            specialty=analysis.specialty,
            sector_breakdown=dict(analysis.sector_breakdown),
            badges=list(badges),
            recent_pnl=analysis.recent_pnl,
            volume_history=list(analysis.volume_history),
        )

    def is_stale(self, now_ms: Optional[int] = None, max_age_hours: float = 6.0) -> bool:
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return self.last_updated < now_ms - max_age_hours * MILLIS_PER_HOUR

    def as_dict(self) -> dict[str, Any]:
        return {
            "last_updated": self.last_updated,
            "win_rate": self.win_rate,
            "profit_factor": self.profit_factor,
            "total_volume": _money(self.total_volume),
            "trade_count": self.trade_count,
            "specialty": self.specialty.value,
            "sector_breakdown": {
                sector.value: stats.as_dict()
                for sector, stats in self.sector_breakdown.items()
            },
            "badges": [badge.value for badge in self.badges],
            "recent_pnl": _money(self.recent_pnl),
            "volume_history": [_money(v) for v in self.volume_history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraderStats:
        breakdown = empty_sector_breakdown()
        for name, raw in (data.get("sector_breakdown") or {}).items():
            breakdown[Sector(name)] = SectorStats(
                trades=int(raw.get("trades", 0)),
                win_rate=float(raw.get("win_rate", 0.0)),
            )
        return cls(
            last_updated=int(data["last_updated"]),
            win_rate=float(data.get("win_rate", 0.0)),
            profit_factor=float(data.get("profit_factor", 0.0)),
            total_volume=to_decimal(data.get("total_volume")),
            trade_count=int(data.get("trade_count", 0)),
            specialty=Sector(data.get("specialty", Sector.OTHER.value)),
            sector_breakdown=breakdown,
            badges=[TraderBadge(b) for b in data.get("badges", [])],
            recent_pnl=to_decimal(data.get("recent_pnl")),
            volume_history=[to_decimal(v) for v in data.get("volume_history", [0] * 7)],
        )


# ---------------------------------------------------------------------------
# Wallets and the ghost portfolio
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class WatchedWallet:
    id: str
    address: str
    label: str
    tier: Tier = Tier.WATCHLIST
    proxy_address: Optional[str] = None
    notes: Optional[str] = None
    ghost_mode: bool = False
    ghost_started_at: Optional[datetime] = None
    added_at: datetime = field(default_factory=_utcnow)
    last_synced_at: Optional[datetime] = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "label": self.label,
            "tier": self.tier.value,
            "proxy_address": self.proxy_address,
            "notes": self.notes,
            "ghost_mode": self.ghost_mode,
            "ghost_started_at": self.ghost_started_at.isoformat() if self.ghost_started_at else None,
            "added_at": self.added_at.isoformat(),
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }


@dataclass(slots=True)
class GhostPosition:
    condition_id: str
    outcome: str
    market_title: str
    sector: Sector
    shares: Decimal
    avg_entry_price: Decimal
    total_cost: Decimal
    current_value: Decimal
    unrealized_pnl: Decimal
    trades: list[Trade] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "condition_id": self.condition_id,
            "outcome": self.outcome,
            "market_title": self.market_title,
            "sector": self.sector.value,
            "shares": _money(self.shares),
            "avg_entry_price": _money(self.avg_entry_price),
            "total_cost": _money(self.total_cost),
            "current_value": _money(self.current_value),
            "unrealized_pnl": _money(self.unrealized_pnl),
            "trade_count": len(self.trades),
        }


@dataclass(slots=True)
class GhostPortfolioSummary:
    wallet_id: str
    wallet_label: str
    ghost_started_at: Optional[datetime]
    total_invested: Decimal = ZERO
    total_returns: Decimal = ZERO
    realized_pnl: Decimal = ZERO
    unrealized_pnl: Decimal = ZERO
    total_pnl: Decimal = ZERO
    positions: list[GhostPosition] = field(default_factory=list)
    trade_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "wallet_id": self.wallet_id,
            "wallet_label": self.wallet_label,
            "ghost_started_at": self.ghost_started_at.isoformat() if self.ghost_started_at else None,
            "total_invested": _money(self.total_invested),
            "total_returns": _money(self.total_returns),
            "realized_pnl": _money(self.realized_pnl),
            "unrealized_pnl": _money(self.unrealized_pnl),
            "total_pnl": _money(self.total_pnl),
            "positions": [p.as_dict() for p in self.positions],
            "trade_count": self.trade_count,
        }


# ---------------------------------------------------------------------------
# Cross-wallet feed and live portfolio
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class FeedTrade:
    """A fill tagged with the tracked wallet it came from."""

    trade: Trade
    wallet_id: str
    wallet_label: str
    sector: Sector

    def as_dict(self) -> dict[str, Any]:
        return {
            **self.trade.as_dict(),
            "wallet_id": self.wallet_id,
            "wallet_label": self.wallet_label,
            "sector": self.sector.value,
        }


@dataclass(slots=True)
class PortfolioSummary:
    total_value: Decimal = ZERO
    total_cost_basis: Decimal = ZERO
    unrealized_pnl: Decimal = ZERO
    unrealized_pnl_percent: float = 0.0
    position_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_value": _money(self.total_value),
            "total_cost_basis": _money(self.total_cost_basis),
            "unrealized_pnl": _money(self.unrealized_pnl),
            "unrealized_pnl_percent": self.unrealized_pnl_percent,
            "position_count": self.position_count,
        }


@dataclass(slots=True)
class AggregateFeed:
    """Newest-first fills across tracked wallets plus per-sector counts."""

    trades: list[FeedTrade] = field(default_factory=list)
    sector_counts: dict[Sector, int] = field(default_factory=lambda: {s: 0 for s in Sector})
    new_trade_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "trades": [t.as_dict() for t in self.trades],
            "sector_counts": {s.value: n for s, n in self.sector_counts.items()},
            "new_trade_ids": list(self.new_trade_ids),
            "count": len(self.trades),
        }
