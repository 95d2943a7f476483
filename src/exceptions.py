"""Custom exceptions for the PolyTracker analytics system."""


class TrackerError(Exception):
    """Base exception for all PolyTracker errors."""


class FeedError(TrackerError):
    """Error connecting to or reading from a market-data API."""


class APIError(FeedError):
    """Non-2xx response from an upstream endpoint."""

    def __init__(self, message: str, status_code: int, endpoint: str):
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


class RateLimitError(APIError):
    """Upstream kept answering 429 until retries ran out."""


class PersistenceError(TrackerError):
    """Database persistence failure."""


class WalletExistsError(PersistenceError):
    """Wallet address is already tracked."""


class WalletNotFoundError(PersistenceError):
    """No tracked wallet with the given id."""


class ConfigError(TrackerError):
    """Missing or invalid configuration."""


class WorkerError(TrackerError):
    """Analytics worker returned an error response."""
