"""Display formatters shared by the CLI report and the API."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]


def format_usd(value: Number) -> str:
    """Format USD values with K/M suffixes ($1.5M, $12.3K, $42)."""
    v = float(value)
    if v >= 1_000_000:
        return f"${v / 1_000_000:.1f}M"
    if v >= 1_000:
        return f"${v / 1_000:.1f}K"
    return f"${v:.0f}"


def format_percent(value: Number) -> str:
    v = float(value)
    sign = "+" if v >= 0 else ""
    return f"{sign}{v:.1f}%"


def format_win_rate(value: Number) -> str:
    return f"{float(value):.0f}%"


def truncate_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Render a timestamp as "just now", "5m ago", "2h ago", "3d ago" or a date."""
    now = now or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    diff_seconds = (now - timestamp).total_seconds()
    minutes = int(diff_seconds // 60)
    hours = int(diff_seconds // 3600)
    days = int(diff_seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return timestamp.date().isoformat()
