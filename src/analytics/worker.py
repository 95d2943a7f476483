"""Off-thread analytics worker.

Message protocol (one response per request, no partial results):

    {"type": "ANALYZE", "trades": [...], "resolutions": ...}
        -> {"status": "success", "result": {...analysis, "badges": [...]}}
        -> {"status": "error", "message": "..."}
    {"type": "PING"} -> {"type": "PONG"}

``handle_message`` is pure and never raises; ``AnalyticsWorker`` runs it on
a dedicated thread pool so large histories don't block the event loop.
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Mapping, Optional, Union

import structlog

from src.analytics.badges import assign_badges
from src.analytics.models import MarketResolutionInfo, Trade
from src.analytics.pnl import analyze_trades
from src.analytics.validation import safe_parse_trades
from src.exceptions import WorkerError

logger = structlog.get_logger()

MSG_ANALYZE = "ANALYZE"
MSG_PING = "PING"
MSG_PONG = "PONG"

ResolutionsInput = Union[
    Mapping[str, Union[MarketResolutionInfo, Mapping[str, Any]]],
    Iterable[tuple[str, Union[MarketResolutionInfo, Mapping[str, Any]]]],
    None,
]


def _resolution_map(raw: ResolutionsInput) -> dict[str, MarketResolutionInfo]:
    if not raw:
        return {}
    pairs = raw.items() if isinstance(raw, Mapping) else raw
    resolutions: dict[str, MarketResolutionInfo] = {}
    for condition_id, info in pairs:
        if not isinstance(info, MarketResolutionInfo):
            info = MarketResolutionInfo.from_dict({"condition_id": condition_id, **info})
        resolutions[condition_id] = info
    return resolutions


def run_analysis(
    trades: Iterable[Union[Trade, Mapping[str, Any]]],
    resolutions: ResolutionsInput = None,
) -> dict[str, Any]:
    """Validate, analyze and badge a batch; returns the success payload body."""
    valid = safe_parse_trades(trades)
    analysis = analyze_trades(valid, _resolution_map(resolutions))
    result = analysis.as_dict()
    result["badges"] = [badge.value for badge in assign_badges(analysis)]
    return result


def handle_message(message: Mapping[str, Any]) -> dict[str, Any]:
    """Process one worker request; unexpected faults become error responses."""
    msg_type = message.get("type") if isinstance(message, Mapping) else None
    try:
        if msg_type == MSG_PING:
            return {"type": MSG_PONG}
        if msg_type == MSG_ANALYZE:
            result = run_analysis(
                message.get("trades") or [],
                message.get("resolutions"),
            )
            return {"status": "success", "result": result}
        return {"status": "error", "message": f"Unknown message type: {msg_type!r}"}
    except Exception as exc:
        logger.error("analytics_worker_failed", error=str(exc), error_type=type(exc).__name__)
        return {"status": "error", "message": str(exc) or type(exc).__name__}


class AnalyticsWorker:
    """Runs ``handle_message`` on a background thread pool."""

    def __init__(self, max_workers: int = 1, executor: Optional[ThreadPoolExecutor] = None):
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="analytics"
        )

    async def request(self, message: Mapping[str, Any]) -> dict[str, Any]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, handle_message, dict(message))

    async def analyze(
        self,
        trades: Iterable[Union[Trade, Mapping[str, Any]]],
        resolutions: ResolutionsInput = None,
    ) -> dict[str, Any]:
        """Analyze off-thread; raises WorkerError on an error response."""
        response = await self.request({
            "type": MSG_ANALYZE,
            "trades": list(trades),
            "resolutions": resolutions,
        })
        if response.get("status") != "success":
            raise WorkerError(response.get("message", "unknown worker error"))
        return response["result"]

    async def ping(self, timeout: float = 5.0) -> bool:
        """Liveness check: True if the worker answers PONG within ``timeout``."""
        try:
            response = await asyncio.wait_for(self.request({"type": MSG_PING}), timeout)
        except asyncio.TimeoutError:
            logger.warning("analytics_worker_ping_timeout", timeout=timeout)
            return False
        return response.get("type") == MSG_PONG

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
