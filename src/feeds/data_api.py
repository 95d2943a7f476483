"""Polymarket Data/CLOB API client.

Fetches trades, live positions, market resolutions and prices for tracked
wallets. Every request goes through ``_get_json``:

- HTTP 429 backs off exponentially and retries while attempts remain.
- Other non-2xx responses and transport errors (timeouts included) retry
  up to ``max_retries``; the final failure propagates as ``APIError``
  (HTTP status) or ``FeedError`` (transport).
- Backoff is ``min(base * 2**attempt, max)``.

Multi-wallet and multi-market fetches run in batches of ``batch_concurrency``
concurrent requests separated by ``batch_delay`` seconds to stay under the
upstream rate limits.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Optional, Sequence, TypeVar

import httpx
import structlog

from config.settings import settings
from src.analytics.models import (
    MarketResolutionInfo,
    Position,
    RedemptionStatus,
    ResolutionStatus,
    Trade,
)
from src.analytics.validation import parse_positions, parse_trades
from src.exceptions import APIError, FeedError, RateLimitError
from src.utils.parsing import ZERO, normalize_outcome, to_decimal

logger = structlog.get_logger()
T = TypeVar("T")
R = TypeVar("R")

RETRYABLE_TRANSPORT = (httpx.TimeoutException, httpx.TransportError)


class PolymarketDataClient:
    """Async client for the Polymarket data-api and CLOB read endpoints."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        data_api: str = settings.POLYMARKET_DATA_API,
        clob_api: str = settings.POLYMARKET_CLOB_HTTP,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
        max_retries: int = settings.HTTP_MAX_RETRIES,
        backoff_base: float = settings.HTTP_BACKOFF_BASE_SECONDS,
        backoff_max: float = settings.HTTP_BACKOFF_MAX_SECONDS,
        batch_concurrency: int = settings.FETCH_BATCH_CONCURRENCY,
        batch_delay: float = settings.FETCH_BATCH_DELAY_SECONDS,
        max_future_skew: float = settings.MAX_FUTURE_SKEW_SECONDS,
        user_agent: str = settings.HTTP_USER_AGENT,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient()
        self.data_api = data_api.rstrip("/")
        self.clob_api = clob_api.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.batch_concurrency = max(1, batch_concurrency)
        self.batch_delay = batch_delay
        self.max_future_skew = max_future_skew
        self._headers = {"Accept": "application/json", "User-Agent": user_agent}
        self._sleep = sleep

    async def __aenter__(self) -> PolymarketDataClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** attempt), self.backoff_max)

    async def _get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                resp = await self._client.get(
                    url, params=params, headers=self._headers, timeout=self.timeout,
                )
            except RETRYABLE_TRANSPORT as exc:
                if last:
                    logger.error("api_request_failed", url=url, error=str(exc) or type(exc).__name__,
                                 attempts=attempts)
                    raise FeedError(f"Request to {url} failed: {exc!r}") from exc
                delay = self._backoff(attempt)
                logger.warning("api_request_retry", url=url, attempt=attempt + 1,
                               delay=delay, error=str(exc) or type(exc).__name__)
                await self._sleep(delay)
                continue

            if resp.status_code == 429:
                if last:
                    logger.error("api_rate_limited", url=url, attempts=attempts)
                    raise RateLimitError("HTTP 429: rate limited", 429, url)
                delay = self._backoff(attempt)
                logger.warning("api_rate_limit_backoff", url=url, attempt=attempt + 1, delay=delay)
                await self._sleep(delay)
                continue

            if not resp.is_success:
                error = APIError(
                    f"HTTP {resp.status_code}: {resp.reason_phrase}", resp.status_code, url,
                )
                if last:
                    logger.error("api_request_failed", url=url, status_code=resp.status_code,
                                 attempts=attempts)
                    raise error
                delay = self._backoff(attempt)
                logger.warning("api_request_retry", url=url, attempt=attempt + 1,
                               delay=delay, status_code=resp.status_code)
                await self._sleep(delay)
                continue

            return resp.json()

        raise FeedError(f"Failed to fetch {url} after {attempts} attempts")

    async def _gather_batched(
        self,
        items: Sequence[T],
        fetch: Callable[[T], Awaitable[R]],
    ) -> list[R | BaseException]:
        """Run ``fetch`` over ``items`` in rate-limited concurrent batches."""
        results: list[R | BaseException] = []
        for start in range(0, len(items), self.batch_concurrency):
            if start:
                await self._sleep(self.batch_delay)
            batch = items[start:start + self.batch_concurrency]
            results.extend(await asyncio.gather(
                *(fetch(item) for item in batch), return_exceptions=True,
            ))
        return results

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    async def resolve_proxy(self, address: str) -> str:
        """Map an EOA to its Polymarket proxy wallet; falls back to ``address``."""
        try:
            users = await self._get_json(
                f"{self.data_api}/users", params={"address": address.lower()},
            )
        except FeedError as exc:
            logger.warning("proxy_resolution_failed", address=address, error=str(exc))
            return address
        if isinstance(users, list) and users and users[0].get("proxyWallet"):
            return str(users[0]["proxyWallet"])
        return address

    async def fetch_trades(self, address: str, limit: int = settings.TRADE_FETCH_LIMIT) -> list[Trade]:
        """Recent fills for a wallet, validated; malformed records are dropped."""
        proxy = await self.resolve_proxy(address)
        payload = await self._get_json(
            f"{self.data_api}/trades", params={"user": proxy, "limit": limit},
        )
        rows = payload if isinstance(payload, list) else []
        trades, dropped = parse_trades(
            (_normalize_trade(raw, address) for raw in rows if isinstance(raw, dict)),
            max_future_skew=self.max_future_skew,
        )
        logger.info("trades_fetched", address=address, count=len(trades), dropped=dropped)
        return trades

    async def fetch_trades_for_wallets(
        self, addresses: Sequence[str], limit: int = settings.TRADE_FETCH_LIMIT,
    ) -> dict[str, list[Trade]]:
        """Fetch several wallets in rate-limited batches.

        Wallets whose fetch failed are logged and left out of the result.
        """
        results = await self._gather_batched(
            list(addresses), lambda addr: self.fetch_trades(addr, limit),
        )
        out: dict[str, list[Trade]] = {}
        for address, result in zip(addresses, results):
            if isinstance(result, BaseException):
                logger.error("wallet_trades_failed", address=address, error=str(result))
                continue
            out[address] = result
        return out

    async def fetch_positions(self, address: str) -> list[Position]:
        """Active live positions for a wallet, valued with Decimal math."""
        proxy = await self.resolve_proxy(address)
        payload = await self._get_json(f"{self.data_api}/positions", params={"user": proxy})
        rows = payload if isinstance(payload, list) else []
        positions, _ = parse_positions(
            _normalize_position(raw, address) for raw in rows if isinstance(raw, dict)
        )
        return [p for p in positions if p.redemption_status is RedemptionStatus.ACTIVE]

    async def fetch_portfolio_value(self, address: str) -> Decimal:
        proxy = await self.resolve_proxy(address)
        try:
            data = await self._get_json(f"{self.data_api}/value", params={"user": proxy})
        except FeedError as exc:
            logger.warning("portfolio_value_failed", address=address, error=str(exc))
            return ZERO
        if isinstance(data, list):
            data = data[0] if data else {}
        return to_decimal(data.get("value") if isinstance(data, dict) else None)

    # ------------------------------------------------------------------
    # Markets
    # ------------------------------------------------------------------

    async def fetch_market_resolution(self, condition_id: str) -> Optional[MarketResolutionInfo]:
        """Resolution state from the CLOB market endpoint; None when unavailable."""
        try:
            data = await self._get_json(f"{self.clob_api}/markets/{condition_id}")
        except FeedError as exc:
            logger.warning("market_resolution_failed", condition_id=condition_id, error=str(exc))
            return None
        if not isinstance(data, dict):
            return None
        return _parse_resolution(condition_id, data)

    async def fetch_resolutions(self, condition_ids: Iterable[str]) -> dict[str, MarketResolutionInfo]:
        unique = list(dict.fromkeys(condition_ids))
        results = await self._gather_batched(unique, self.fetch_market_resolution)
        return {
            cid: info
            for cid, info in zip(unique, results)
            if isinstance(info, MarketResolutionInfo)
        }

    async def fetch_price(self, token_id: str) -> Decimal:
        """Midpoint price for a token, 0 when unavailable."""
        try:
            data = await self._get_json(f"{self.clob_api}/midpoint", params={"token_id": token_id})
        except FeedError as exc:
            logger.warning("price_fetch_failed", token_id=token_id, error=str(exc))
            return ZERO
        return to_decimal(data.get("mid") if isinstance(data, dict) else None)


# ---------------------------------------------------------------------------
# Payload normalization
# ---------------------------------------------------------------------------


def _normalize_trade(raw: dict[str, Any], address: str) -> dict[str, Any]:
    condition_id = raw.get("conditionId")
    outcome = raw.get("outcome")
    return {
        "id": raw.get("id") or None,
        "walletAddress": address,
        "conditionId": condition_id,
        "marketSlug": raw.get("slug") or str(condition_id or "")[:16],
        "marketTitle": raw.get("title") or "Unknown Market",
        "side": str(raw.get("side") or "").upper(),
        "outcome": normalize_outcome(outcome) if outcome is not None else None,
        "size": raw.get("size"),
        "price": raw.get("price"),
        "timestamp": raw.get("timestamp"),
        "transactionHash": raw.get("transactionHash") or "",
        "blockNumber": raw.get("blockNumber") or 0,
    }


def _normalize_position(raw: dict[str, Any], address: str) -> dict[str, Any]:
    condition_id = raw.get("conditionId")
    outcome_index = raw.get("outcomeIndex") or 0
    size = to_decimal(raw.get("size"))
    avg_price = to_decimal(raw.get("avgPrice"))
    cur_price = to_decimal(raw.get("curPrice"))

    current_value = size * cur_price
    cost_basis = size * avg_price
    unrealized = current_value - cost_basis
    unrealized_pct = unrealized / cost_basis * 100 if cost_basis > 0 else ZERO

    outcome = raw.get("outcome") or ("YES" if outcome_index == 0 else "NO")
    return {
        "id": f"{condition_id}-{outcome_index}",
        "walletAddress": address,
        "proxyWallet": raw.get("proxyWallet"),
        "conditionId": condition_id,
        "marketSlug": raw.get("slug") or str(condition_id or "")[:16],
        "marketTitle": raw.get("title") or "Unknown Market",
        "outcome": normalize_outcome(outcome),
        "tokenId": raw.get("asset"),
        "size": raw.get("size"),
        "avgEntryPrice": raw.get("avgPrice"),
        "currentPrice": raw.get("curPrice") if raw.get("curPrice") is not None else "0",
        "costBasis": cost_basis,
        "currentValue": current_value,
        "unrealizedPnL": unrealized,
        "unrealizedPnLPercent": unrealized_pct,
        "redemptionStatus": (
            RedemptionStatus.RESOLVED.value if raw.get("redeemable") else RedemptionStatus.ACTIVE.value
        ),
        "createdAt": raw.get("createdAt") or _now_iso(),
        "updatedAt": _now_iso(),
    }


def _parse_resolution(condition_id: str, data: dict[str, Any]) -> MarketResolutionInfo:
    if not data.get("closed"):
        return MarketResolutionInfo(condition_id=condition_id, is_closed=False)
    winners = [t for t in data.get("tokens") or [] if isinstance(t, dict) and t.get("winner")]
    if not winners:
        return MarketResolutionInfo(
            condition_id=condition_id,
            is_closed=True,
            resolution_status=ResolutionStatus.INVALID,
        )
    return MarketResolutionInfo(
        condition_id=condition_id,
        is_closed=True,
        winning_outcome=normalize_outcome(winners[0].get("outcome")),
        resolution_status=ResolutionStatus.RESOLVED,
    )


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
