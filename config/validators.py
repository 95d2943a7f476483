"""Configuration validators."""

from src.exceptions import ConfigError


def validate_http_settings() -> None:
    """Raise ConfigError if the HTTP retry/backpressure settings are unusable."""
    from config.settings import settings
    if settings.HTTP_MAX_RETRIES < 0:
        raise ConfigError("HTTP_MAX_RETRIES must be >= 0")
    if settings.HTTP_TIMEOUT_SECONDS <= 0:
        raise ConfigError("HTTP_TIMEOUT_SECONDS must be positive")
    if settings.HTTP_BACKOFF_MAX_SECONDS < settings.HTTP_BACKOFF_BASE_SECONDS:
        raise ConfigError("HTTP_BACKOFF_MAX_SECONDS must be >= HTTP_BACKOFF_BASE_SECONDS")
    if settings.FETCH_BATCH_CONCURRENCY < 1:
        raise ConfigError("FETCH_BATCH_CONCURRENCY must be >= 1")


def validate_analytics_settings() -> None:
    """Raise ConfigError if the analytics cache/worker settings are unusable."""
    from config.settings import settings
    if settings.STATS_STALE_HOURS <= 0:
        raise ConfigError("STATS_STALE_HOURS must be positive")
    if settings.ANALYTICS_WORKER_THREADS < 1:
        raise ConfigError("ANALYTICS_WORKER_THREADS must be >= 1")
    if settings.TRADE_FETCH_LIMIT < 1:
        raise ConfigError("TRADE_FETCH_LIMIT must be >= 1")
