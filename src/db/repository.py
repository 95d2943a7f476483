"""Wallet and stats persistence.

``WalletRepository`` owns the ``watched_wallets`` and ``trader_stats`` tables
and hands out plain ``WatchedWallet`` / ``TraderStats`` domain objects. Every
mutation is announced to subscribers as a ``WalletChange``.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from config.settings import settings
from src.analytics.models import TraderStats, Tier, WatchedWallet
from src.exceptions import WalletExistsError, WalletNotFoundError

from .database import session_scope
from .models import TraderStatsRow, WatchedWalletRow

logger = structlog.get_logger()

UPDATABLE_FIELDS = frozenset({
    "label",
    "tier",
    "proxy_address",
    "notes",
    "ghost_mode",
    "ghost_started_at",
    "last_synced_at",
})


@dataclass(frozen=True, slots=True)
class WalletChange:
    kind: str  # added, updated, removed
    wallet_id: str
    wallet: Optional[WatchedWallet] = None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_utc(value: datetime) -> datetime:
    # Stored as UTC wall time; naive input is taken as UTC already.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_domain(row: WatchedWalletRow) -> WatchedWallet:
    return WatchedWallet(
        id=row.id,
        address=row.address,
        label=row.label,
        tier=Tier(row.tier),
        proxy_address=row.proxy_address,
        notes=row.notes,
        ghost_mode=bool(row.ghost_mode),
        ghost_started_at=_as_utc(row.ghost_started_at),
        added_at=_as_utc(row.added_at),
        last_synced_at=_as_utc(row.last_synced_at),
    )


class WalletRepository:
    """CRUD over tracked wallets plus the per-wallet stats cache."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._listeners: list[Callable[[WalletChange], None]] = []

    # ------------------------------------------------------------------
    # Change notifications
    # ------------------------------------------------------------------

    def subscribe(self, callback: Callable[[WalletChange], None]) -> Callable[[], None]:
        """Register a change listener; returns a function that unsubscribes it."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _emit(self, change: WalletChange) -> None:
        for callback in list(self._listeners):
            callback(change)

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def _require(self, session: Session, wallet_id: str) -> WatchedWalletRow:
        row = session.get(WatchedWalletRow, wallet_id)
        if row is None:
            raise WalletNotFoundError(f"Wallet not found: {wallet_id}")
        return row

    def get_all(self) -> list[WatchedWallet]:
        with session_scope(self._session_factory) as session:
            rows = session.scalars(select(WatchedWalletRow).order_by(WatchedWalletRow.added_at))
            return [_to_domain(row) for row in rows]

    def get(self, wallet_id: str) -> Optional[WatchedWallet]:
        with session_scope(self._session_factory) as session:
            row = session.get(WatchedWalletRow, wallet_id)
            return _to_domain(row) if row is not None else None

    def get_by_address(self, address: str) -> Optional[WatchedWallet]:
        with session_scope(self._session_factory) as session:
            row = session.scalars(
                select(WatchedWalletRow).where(WatchedWalletRow.address == address.lower())
            ).first()
            return _to_domain(row) if row is not None else None

    def get_by_tier(self, tier: Tier) -> list[WatchedWallet]:
        tier = Tier(tier)
        return [w for w in self.get_all() if w.tier is tier]

    def get_following(self) -> list[WatchedWallet]:
        return self.get_by_tier(Tier.FOLLOWING)

    def get_watchlist(self) -> list[WatchedWallet]:
        return self.get_by_tier(Tier.WATCHLIST)

    def add(
        self,
        address: str,
        label: Optional[str] = None,
        tier: Tier = Tier.WATCHLIST,
        notes: Optional[str] = None,
    ) -> WatchedWallet:
        """Track a new wallet. Raises WalletExistsError for a known address."""
        address = address.strip().lower()
        with session_scope(self._session_factory) as session:
            exists = session.scalars(
                select(WatchedWalletRow.id).where(WatchedWalletRow.address == address)
            ).first()
            if exists is not None:
                raise WalletExistsError(f"Wallet already exists: {address}")

            count = session.scalar(select(func.count()).select_from(WatchedWalletRow)) or 0
            row = WatchedWalletRow(
                id=str(uuid.uuid4()),
                address=address,
                label=label or f"Trader {count + 1}",
                tier=Tier(tier).value,
                notes=notes,
                ghost_mode=False,
                added_at=datetime.now(timezone.utc),
            )
            session.add(row)
            session.flush()
            wallet = _to_domain(row)

        logger.info("wallet_added", wallet_id=wallet.id, address=address, tier=wallet.tier.value)
        self._emit(WalletChange("added", wallet.id, wallet))
        return wallet

    def remove(self, wallet_id: str) -> None:
        """Stop tracking a wallet and drop its cached stats."""
        with session_scope(self._session_factory) as session:
            stats = session.get(TraderStatsRow, wallet_id)
            if stats is not None:
                session.delete(stats)
            row = session.get(WatchedWalletRow, wallet_id)
            if row is None:
                return
            session.delete(row)

        logger.info("wallet_removed", wallet_id=wallet_id)
        self._emit(WalletChange("removed", wallet_id))

    def update(self, wallet_id: str, **changes: Any) -> WatchedWallet:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update wallet fields: {sorted(unknown)}")
        if "tier" in changes:
            changes["tier"] = Tier(changes["tier"]).value

        with session_scope(self._session_factory) as session:
            row = self._require(session, wallet_id)
            for name, value in changes.items():
                if isinstance(value, datetime):
                    value = _to_utc(value)
                setattr(row, name, value)
            session.flush()
            wallet = _to_domain(row)

        self._emit(WalletChange("updated", wallet_id, wallet))
        return wallet

    def promote_to(self, wallet_id: str, tier: Tier) -> WatchedWallet:
        return self.update(wallet_id, tier=tier)

    def toggle_ghost_mode(
        self, wallet_id: str, enabled: bool, now: Optional[datetime] = None,
    ) -> WatchedWallet:
        """Turn ghost mode on (starting now) or off.

        Switching off keeps ``ghost_started_at`` so the last session stays on record.
        """
        if enabled:
            wallet = self.update(
                wallet_id, ghost_mode=True, ghost_started_at=now or datetime.now(timezone.utc),
            )
        else:
            wallet = self.update(wallet_id, ghost_mode=False)
        logger.info("ghost_mode_toggled", wallet_id=wallet_id, enabled=enabled)
        return wallet

    def update_proxy_address(self, wallet_id: str, proxy_address: str) -> WatchedWallet:
        return self.update(wallet_id, proxy_address=proxy_address)

    def update_last_synced(self, wallet_id: str, now: Optional[datetime] = None) -> WatchedWallet:
        return self.update(wallet_id, last_synced_at=now or datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Stats cache
    # ------------------------------------------------------------------

    def get_stats(self, wallet_id: str) -> Optional[TraderStats]:
        with session_scope(self._session_factory) as session:
            row = session.get(TraderStatsRow, wallet_id)
            if row is None:
                return None
            return TraderStats.from_dict(row.payload)

    def save_stats(self, wallet_id: str, stats: TraderStats) -> None:
        payload = stats.as_dict()
        with session_scope(self._session_factory) as session:
            row = session.get(TraderStatsRow, wallet_id)
            if row is None:
                session.add(TraderStatsRow(
                    wallet_id=wallet_id, last_updated=stats.last_updated, payload=payload,
                ))
            else:
                row.last_updated = stats.last_updated
                row.payload = payload
        logger.debug("stats_saved", wallet_id=wallet_id, last_updated=stats.last_updated)

    def remove_stats(self, wallet_id: str) -> None:
        with session_scope(self._session_factory) as session:
            row = session.get(TraderStatsRow, wallet_id)
            if row is not None:
                session.delete(row)

    def is_stats_stale(
        self,
        wallet_id: str,
        now_ms: Optional[int] = None,
        max_age_hours: float = settings.STATS_STALE_HOURS,
    ) -> bool:
        """True when there are no cached stats or they are older than ``max_age_hours``."""
        stats = self.get_stats(wallet_id)
        if stats is None:
            return True
        now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        return stats.is_stale(now_ms, max_age_hours)
