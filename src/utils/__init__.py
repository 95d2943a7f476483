"""Utility modules for the tracker.

Sub-modules:
- logging: configure_logging() for structlog setup
- parsing: Decimal/timestamp conversion helpers
- formatting: USD/percent/relative-time display helpers
"""

from .logging import configure_logging
from .formatting import (
    format_percent,
    format_relative_time,
    format_usd,
    format_win_rate,
    truncate_address,
)

__all__ = [
    "configure_logging",
    "format_usd",
    "format_percent",
    "format_win_rate",
    "truncate_address",
    "format_relative_time",
]
