"""Database module for wallet tracking and the stats cache."""

from .models import Base, TraderStatsRow, WatchedWalletRow
from .database import (
    close_db,
    create_db_engine,
    get_engine,
    get_session_factory,
    init_db,
    make_session_factory,
    session_scope,
)
from .repository import WalletChange, WalletRepository

__all__ = [
    "Base",
    "TraderStatsRow",
    "WatchedWalletRow",
    "WalletChange",
    "WalletRepository",
    "close_db",
    "create_db_engine",
    "get_engine",
    "get_session_factory",
    "init_db",
    "make_session_factory",
    "session_scope",
]
