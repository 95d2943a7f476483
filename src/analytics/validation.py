"""Schema validation for raw trade and position records.

Every record entering the analytics pipeline passes through here. Records
that violate a constraint (price outside [0, 1], negative size or amount,
unparseable or future timestamp, unknown side) are dropped one by one and
logged; the rest of the batch continues.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Literal, Optional

import structlog
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from src.analytics.models import Position, RedemptionStatus, Side, Trade
from src.utils.parsing import parse_timestamp, to_epoch_millis

logger = structlog.get_logger()

DEFAULT_MAX_FUTURE_SKEW_SECONDS = 60.0

_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


def _decimal_or_raise(value: Any) -> Any:
    """Convert floats through ``str`` and reject non-finite numbers."""
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, (int, float, str)):
        try:
            value = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError("not a number") from None
    if isinstance(value, Decimal) and not value.is_finite():
        raise ValueError("not a finite number")
    return value


def _id_or_raise(value: Any) -> Any:
    # Upstream ids are sometimes numeric.
    if isinstance(value, bool):
        raise ValueError("boolean is not an id")
    if isinstance(value, int):
        return str(value)
    return value


def _check_not_future(value: datetime, info: ValidationInfo) -> datetime:
    context = info.context or {}
    now = context.get("now") or datetime.now(timezone.utc)
    skew = context.get("max_future_skew", DEFAULT_MAX_FUTURE_SKEW_SECONDS)
    if value > now + timedelta(seconds=skew):
        raise ValueError("timestamp is in the future")
    return value


class TradeRecord(BaseModel):
    """A raw fill from the data API or a persisted cache."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    tx_hash: str = Field(default="", validation_alias=_alias("tx_hash", "txHash", "transactionHash"))
    wallet_address: str = Field(default="", validation_alias=_alias("wallet_address", "walletAddress"))
    condition_id: str = Field(validation_alias=_alias("condition_id", "conditionId"))
    market_slug: str = Field(validation_alias=_alias("market_slug", "marketSlug"))
    market_title: str = Field(validation_alias=_alias("market_title", "marketTitle"))
    outcome: str
    side: Literal["BUY", "SELL"]
    price: Decimal = Field(ge=0, le=1)
    size: Decimal = Field(ge=0)
    usdc_amount: Optional[Decimal] = Field(default=None, ge=0, validation_alias=_alias("usdc_amount", "usdcAmount"))
    timestamp: datetime
    block_number: int = Field(default=0, validation_alias=_alias("block_number", "blockNumber"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return _id_or_raise(value)

    @field_validator("price", "size", "usdc_amount", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        if value is None:
            return value
        return _decimal_or_raise(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError("invalid timestamp")
        return parsed

    @field_validator("timestamp")
    @classmethod
    def _not_in_future(cls, value: datetime, info: ValidationInfo) -> datetime:
        return _check_not_future(value, info)

    @model_validator(mode="after")
    def _derive_notional(self) -> TradeRecord:
        if self.usdc_amount is None:
            self.usdc_amount = self.size * self.price
        return self

    def to_trade(self) -> Trade:
        trade_id = self.id or f"trade-{to_epoch_millis(self.timestamp)}-{self.tx_hash}"
        return Trade(
            id=trade_id,
            condition_id=self.condition_id,
            outcome=self.outcome,
            side=Side(self.side),
            size=self.size,
            price=self.price,
            usdc_amount=self.usdc_amount if self.usdc_amount is not None else self.size * self.price,
            timestamp=self.timestamp,
            market_title=self.market_title,
            market_slug=self.market_slug,
            wallet_address=self.wallet_address,
            tx_hash=self.tx_hash,
            block_number=self.block_number,
        )


class PositionRecord(BaseModel):
    """A normalized live position."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    wallet_address: str = Field(validation_alias=_alias("wallet_address", "walletAddress"))
    proxy_wallet: str = Field(validation_alias=_alias("proxy_wallet", "proxyWallet"))
    condition_id: str = Field(validation_alias=_alias("condition_id", "conditionId"))
    market_slug: str = Field(validation_alias=_alias("market_slug", "marketSlug"))
    market_title: str = Field(validation_alias=_alias("market_title", "marketTitle"))
    outcome: str
    token_id: str = Field(validation_alias=_alias("token_id", "tokenId"))
    size: Decimal = Field(ge=0)
    avg_entry_price: Decimal = Field(ge=0, le=1, validation_alias=_alias("avg_entry_price", "avgEntryPrice"))
    current_price: Decimal = Field(ge=0, le=1, validation_alias=_alias("current_price", "currentPrice"))
    cost_basis: Decimal = Field(ge=0, validation_alias=_alias("cost_basis", "costBasis"))
    current_value: Decimal = Field(ge=0, validation_alias=_alias("current_value", "currentValue"))
    unrealized_pnl: Decimal = Field(validation_alias=_alias("unrealized_pnl", "unrealizedPnL"))
    unrealized_pnl_percent: Decimal = Field(
        validation_alias=_alias("unrealized_pnl_percent", "unrealizedPnLPercent"),
    )
    redemption_status: Literal["ACTIVE", "RESOLVED", "REDEEMED"] = Field(
        validation_alias=_alias("redemption_status", "redemptionStatus"),
    )
    created_at: datetime = Field(validation_alias=_alias("created_at", "createdAt"))
    updated_at: datetime = Field(validation_alias=_alias("updated_at", "updatedAt"))

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return _id_or_raise(value)

    @field_validator(
        "size", "avg_entry_price", "current_price", "cost_basis",
        "current_value", "unrealized_pnl", "unrealized_pnl_percent",
        mode="before",
    )
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _decimal_or_raise(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError("invalid timestamp")
        return parsed

    def to_position(self) -> Position:
        return Position(
            id=self.id,
            wallet_address=self.wallet_address,
            proxy_wallet=self.proxy_wallet,
            condition_id=self.condition_id,
            market_slug=self.market_slug,
            market_title=self.market_title,
            outcome=self.outcome,
            token_id=self.token_id,
            size=self.size,
            avg_entry_price=self.avg_entry_price,
            current_price=self.current_price,
            cost_basis=self.cost_basis,
            current_value=self.current_value,
            unrealized_pnl=self.unrealized_pnl,
            unrealized_pnl_percent=self.unrealized_pnl_percent,
            redemption_status=RedemptionStatus(self.redemption_status),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


# ---------------------------------------------------------------------------
# Batch parsing
# ---------------------------------------------------------------------------


def _context(now: Optional[datetime], max_future_skew: float) -> dict[str, Any]:
    return {
        "now": now or datetime.now(timezone.utc),
        "max_future_skew": max_future_skew,
    }


def parse_trades(
    items: Iterable[Any],
    *,
    now: Optional[datetime] = None,
    max_future_skew: float = DEFAULT_MAX_FUTURE_SKEW_SECONDS,
) -> tuple[list[Trade], int]:
    """Validate raw trade records. Returns ``(valid_trades, dropped_count)``."""
    context = _context(now, max_future_skew)
    trades: list[Trade] = []
    dropped = 0
    total = 0
    for item in items:
        total += 1
        if isinstance(item, Trade):
            trades.append(item)
            continue
        try:
            record = TradeRecord.model_validate(item, context=context)
        except ValidationError as exc:
            dropped += 1
            logger.warning(
                "trade_dropped",
                errors=[f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
            )
            continue
        trades.append(record.to_trade())

    if dropped:
        logger.warning("trades_validation_dropped", dropped=dropped, total=total)
    return trades, dropped


def safe_parse_trades(items: Iterable[Any], **kwargs: Any) -> list[Trade]:
    """Validate raw trade records, keeping only the valid ones."""
    trades, _ = parse_trades(items, **kwargs)
    return trades


def parse_positions(items: Iterable[Any]) -> tuple[list[Position], int]:
    """Validate normalized position records. Returns ``(valid, dropped_count)``."""
    positions: list[Position] = []
    dropped = 0
    total = 0
    for item in items:
        total += 1
        try:
            record = PositionRecord.model_validate(item)
        except ValidationError as exc:
            dropped += 1
            logger.warning(
                "position_dropped",
                errors=[f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
            )
            continue
        positions.append(record.to_position())

    if dropped:
        logger.warning("positions_validation_dropped", dropped=dropped, total=total)
    return positions, dropped


def safe_parse_positions(items: Iterable[Any]) -> list[Position]:
    positions, _ = parse_positions(items)
    return positions


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_valid_address(address: Any) -> bool:
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def is_valid_timestamp(
    value: Any,
    *,
    now: Optional[datetime] = None,
    max_future_skew: float = DEFAULT_MAX_FUTURE_SKEW_SECONDS,
) -> bool:
    parsed = parse_timestamp(value)
    if parsed is None:
        return False
    now = now or datetime.now(timezone.utc)
    return parsed <= now + timedelta(seconds=max_future_skew)


def sanitize_number(value: Any, fallback: float = 0.0) -> float:
    """Coerce to a finite float, or ``fallback`` for NaN/inf/garbage."""
    if isinstance(value, bool):
        return float(value)
    try:
        num = float(value)
    except (TypeError, ValueError):
        return fallback
    if num != num or num in (float("inf"), float("-inf")):
        return fallback
    return num
