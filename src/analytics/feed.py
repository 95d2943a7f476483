"""Cross-wallet trade feed and new-trade detection."""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Sequence

import structlog

from src.analytics.models import FeedTrade, Sector, Trade, WatchedWallet
from src.analytics.sectors import detect_sector

logger = structlog.get_logger()


def build_aggregate_feed(
    wallets: Sequence[WatchedWallet],
    trades_by_address: Mapping[str, Sequence[Trade]],
) -> list[FeedTrade]:
    """Merge every wallet's fills, tagged with its label, newest first.

    Wallets missing from ``trades_by_address`` (failed fetch) are skipped.
    """
    feed: list[FeedTrade] = []
    for wallet in wallets:
        trades = trades_by_address.get(wallet.address)
        if trades is None:
            continue
        for trade in trades:
            feed.append(FeedTrade(
                trade=trade,
                wallet_id=wallet.id,
                wallet_label=wallet.label,
                sector=detect_sector(trade.market_title),
            ))
    feed.sort(key=lambda item: item.trade.timestamp, reverse=True)
    return feed


def filter_feed(feed: Sequence[FeedTrade], sector: Optional[Sector] = None) -> list[FeedTrade]:
    if sector is None:
        return list(feed)
    return [item for item in feed if item.sector is sector]


def sector_counts(feed: Sequence[FeedTrade]) -> dict[Sector, int]:
    counts = {sector: 0 for sector in Sector}
    for item in feed:
        counts[item.sector] += 1
    return counts


class NewTradeDetector:
    """Remembers the newest fill seen per wallet address.

    The first look at a wallet only records its latest fill; later calls
    return the fills strictly newer than the remembered one, newest first.
    """

    def __init__(self, last_seen: Optional[Mapping[str, datetime]] = None):
        self._last_seen: dict[str, datetime] = {
            address.lower(): ts for address, ts in (last_seen or {}).items()
        }

    def last_seen(self, address: str) -> Optional[datetime]:
        return self._last_seen.get(address.lower())

    def detect(self, address: str, trades: Sequence[Trade]) -> list[Trade]:
        if not trades:
            return []

        key = address.lower()
        ordered = sorted(trades, key=lambda t: t.timestamp, reverse=True)
        latest = ordered[0].timestamp

        previous = self._last_seen.get(key)
        if previous is None:
            self._last_seen[key] = latest
            logger.debug("trade_watermark_seeded", address=key, last_seen=latest.isoformat())
            return []

        fresh = [t for t in ordered if t.timestamp > previous]
        if fresh:
            self._last_seen[key] = latest
        return fresh

    def forget(self, address: str) -> None:
        self._last_seen.pop(address.lower(), None)
