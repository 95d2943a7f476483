"""Pure parsing and conversion utilities.

Money and share quantities are always converted to ``Decimal`` through
``str`` so a float like ``0.1`` becomes ``Decimal("0.1")`` rather than its
binary expansion.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Context, Decimal, InvalidOperation
from typing import Any, Optional

ZERO = Decimal(0)

# Arithmetic context for all money/share math.
MONEY_CONTEXT = Context(prec=20, rounding=ROUND_HALF_UP)

# Epoch values above this are treated as milliseconds.
_EPOCH_MILLIS_THRESHOLD = 10**11


def to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return default
    if not result.is_finite():
        return default
    return result


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str) and value:
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            dt = datetime.fromisoformat(raw)
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
        except ValueError:
            return None
    return None


def _from_epoch(value: float) -> Optional[datetime]:
    if value != value or value in (float("inf"), float("-inf")):
        return None
    if abs(value) >= _EPOCH_MILLIS_THRESHOLD:
        value = value / 1000
    try:
        return datetime.fromtimestamp(value, timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a datetime, ISO string, or epoch seconds/millis into UTC.

    Returns ``None`` for anything unparseable.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return _from_epoch(float(value))
    if isinstance(value, str):
        stripped = value.strip()
        try:
            return _from_epoch(float(stripped))
        except ValueError:
            return _parse_datetime(stripped)
    return _parse_datetime(value)


def to_epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


def normalize_outcome(value: Any) -> str:
    return str(value or "").strip().upper()
