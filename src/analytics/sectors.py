"""Keyword-based sector detection from market titles."""

from __future__ import annotations

import re
from typing import Any

from src.analytics.models import Sector

# Order matters: a title matching several sectors gets the first one listed.
SECTOR_KEYWORDS: tuple[tuple[Sector, tuple[str, ...]], ...] = (
    (Sector.POLITICS, (
        "trump", "harris", "biden", "election", "senate", "congress",
        "president", "nominee", "democrat", "republican", "vote", "governor",
        "poll", "white house",
    )),
    (Sector.CRYPTO, (
        "bitcoin", "btc", "ethereum", "eth", "solana", "sol", "crypto",
        "token", "nft", "blockchain", "coinbase", "binance", "defi",
        "stablecoin", "usdc", "usdt",
    )),
    (Sector.SPORTS, (
        "nba", "nfl", "mlb", "nhl", "premier league", "football",
        "basketball", "soccer", "baseball", "hockey", "championship",
        "playoffs", "super bowl", "world cup", r"vs\.", r"game \d",
    )),
    (Sector.BUSINESS, (
        "stock", "ipo", "company", "ceo", "earnings", "merger",
        "acquisition", "nasdaq", "dow", "s&p", "fed", "interest rate",
        "inflation", "gdp", "recession",
    )),
    (Sector.ENTERTAINMENT, (
        "movie", "film", "oscar", "grammy", "album", "celebrity", "actor",
        "actress", "music", "concert", "tv show", "streaming", "netflix",
        "disney",
    )),
)

_SECTOR_PATTERNS: tuple[tuple[Sector, re.Pattern[str]], ...] = tuple(
    (sector, re.compile("|".join(keywords), re.IGNORECASE))
    for sector, keywords in SECTOR_KEYWORDS
)


def detect_sector(market_title: Any) -> Sector:
    """Map a market title to its sector; missing or non-string titles are Other."""
    if not market_title or not isinstance(market_title, str):
        return Sector.OTHER

    for sector, pattern in _SECTOR_PATTERNS:
        if pattern.search(market_title):
            return sector
    return Sector.OTHER
