"""FastAPI endpoints for tracked wallets, their stats, portfolios and the trade feed."""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query

from config.settings import settings
from config.validators import validate_analytics_settings, validate_http_settings
from src.analytics.models import Sector, Tier, WatchedWallet
from src.analytics.service import StatsService
from src.analytics.worker import AnalyticsWorker
from src.db.database import get_session_factory, init_db
from src.db.repository import WalletRepository
from src.exceptions import FeedError, WorkerError
from src.feeds.data_api import PolymarketDataClient
from src.utils.logging import configure_logging

logger = structlog.get_logger()

app = FastAPI(title="Wallet Stats API", version="1.0.0")

_repository: Optional[WalletRepository] = None
_service: Optional[StatsService] = None


def get_repository() -> WalletRepository:
    global _repository
    if _repository is None:
        _repository = WalletRepository(get_session_factory())
    return _repository


def get_service(repository: WalletRepository = Depends(get_repository)) -> StatsService:
    global _service
    if _service is None:
        _service = StatsService(
            repository,
            PolymarketDataClient(),
            AnalyticsWorker(max_workers=settings.ANALYTICS_WORKER_THREADS),
        )
    return _service


@app.on_event("startup")
def _startup() -> None:
    validate_http_settings()
    validate_analytics_settings()
    configure_logging()
    init_db()


def _wallet_or_404(repository: WalletRepository, wallet_id: str) -> WatchedWallet:
    wallet = repository.get(wallet_id)
    if wallet is None:
        raise HTTPException(status_code=404, detail=f"Wallet not found: {wallet_id}")
    return wallet


@app.get("/health")
def health() -> dict[str, bool]:
    return {"ok": True}


@app.get("/wallets")
def list_wallets(
    tier: Optional[Tier] = Query(default=None, description="'following' or 'watchlist'."),
    repository: WalletRepository = Depends(get_repository),
) -> dict:
    wallets = repository.get_by_tier(tier) if tier else repository.get_all()
    return {"wallets": [w.as_dict() for w in wallets], "count": len(wallets)}


@app.get("/wallets/{wallet_id}/stats")
async def wallet_stats(
    wallet_id: str,
    refresh: bool = Query(default=False, description="Ignore the cache and recompute."),
    repository: WalletRepository = Depends(get_repository),
    service: StatsService = Depends(get_service),
) -> dict:
    """Cached analytics for a wallet, recomputed when older than the stale window."""
    wallet = _wallet_or_404(repository, wallet_id)
    try:
        stats = await service.get_stats(wallet, force=refresh)
    except FeedError as exc:
        logger.error("stats_upstream_failed", wallet_id=wallet_id, error=str(exc))
        raise HTTPException(status_code=502, detail=f"Upstream error: {exc}") from exc
    except WorkerError as exc:
        logger.error("stats_analysis_failed", wallet_id=wallet_id, error=str(exc))
        raise HTTPException(status_code=500, detail=f"Analysis failed: {exc}") from exc
    return {"wallet": wallet.as_dict(), "stats": stats.as_dict()}


@app.get("/wallets/{wallet_id}/ghost")
async def wallet_ghost(
    wallet_id: str,
    repository: WalletRepository = Depends(get_repository),
    service: StatsService = Depends(get_service),
) -> dict:
    wallet = _wallet_or_404(repository, wallet_id)
    try:
        portfolio = await service.get_ghost_portfolio(wallet)
    except FeedError as exc:
        logger.error("ghost_upstream_failed", wallet_id=wallet_id, error=str(exc))
        raise HTTPException(status_code=502, detail=f"Upstream error: {exc}") from exc
    return portfolio.as_dict()


@app.get("/wallets/{wallet_id}/portfolio")
async def wallet_portfolio(
    wallet_id: str,
    repository: WalletRepository = Depends(get_repository),
    service: StatsService = Depends(get_service),
) -> dict:
    wallet = _wallet_or_404(repository, wallet_id)
    try:
        summary = await service.get_portfolio_summary(wallet)
    except FeedError as exc:
        logger.error("portfolio_upstream_failed", wallet_id=wallet_id, error=str(exc))
        raise HTTPException(status_code=502, detail=f"Upstream error: {exc}") from exc
    return {"wallet": wallet.as_dict(), "portfolio": summary.as_dict()}


@app.get("/feed")
async def trade_feed(
    tier: Optional[Tier] = Query(default=None, description="Only wallets in this tier."),
    sector: Optional[Sector] = Query(default=None, description="Only fills in this sector."),
    repository: WalletRepository = Depends(get_repository),
    service: StatsService = Depends(get_service),
) -> dict:
    """Newest-first fills across tracked wallets; failed wallets are left out."""
    wallets = repository.get_by_tier(tier) if tier else repository.get_all()
    feed = await service.get_aggregate_feed(wallets, sector=sector)
    return feed.as_dict()
