"""SQLAlchemy ORM models for tracked wallets and their cached stats."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class WatchedWalletRow(Base):
    """A wallet on the follow list or watchlist."""

    __tablename__ = "watched_wallets"

    id = Column(String(64), primary_key=True)
    address = Column(String(64), unique=True, nullable=False, index=True)  # lowercase
    label = Column(String(255), nullable=False)
    tier = Column(String(20), nullable=False, default="watchlist")  # following, watchlist
    proxy_address = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    ghost_mode = Column(Boolean, nullable=False, default=False)
    ghost_started_at = Column(DateTime(timezone=True), nullable=True)
    added_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<WatchedWalletRow(id={self.id}, address={self.address}, tier={self.tier})>"


class TraderStatsRow(Base):
    """Cached TraderStats for one wallet, stored as its JSON payload."""

    __tablename__ = "trader_stats"

    wallet_id = Column(
        String(64),
        ForeignKey("watched_wallets.id", ondelete="CASCADE"),
        primary_key=True,
    )
    last_updated = Column(Integer, nullable=False)  # epoch millis
    payload = Column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<TraderStatsRow(wallet_id={self.wallet_id}, last_updated={self.last_updated})>"
