from .data_api import PolymarketDataClient

__all__ = [
    "PolymarketDataClient",
]
