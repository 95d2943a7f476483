"""Runtime configuration, overridable via environment or ``.env``."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # === Polymarket APIs ===
    POLYMARKET_DATA_API: str = "https://data-api.polymarket.com"
    POLYMARKET_GAMMA_API: str = "https://gamma-api.polymarket.com"
    POLYMARKET_CLOB_HTTP: str = "https://clob.polymarket.com"

    # === HTTP client ===
    HTTP_TIMEOUT_SECONDS: float = 5.0
    HTTP_MAX_RETRIES: int = 3
    HTTP_BACKOFF_BASE_SECONDS: float = 1.0
    HTTP_BACKOFF_MAX_SECONDS: float = 30.0  # backoff ceiling
    HTTP_USER_AGENT: str = "PolyTracker/1.0"

    # Batched fetches across many wallets/markets
    FETCH_BATCH_CONCURRENCY: int = 3
    FETCH_BATCH_DELAY_SECONDS: float = 1.1

    # === Analytics ===
    TRADE_FETCH_LIMIT: int = 100
    STATS_STALE_HOURS: float = 6.0
    MAX_FUTURE_SKEW_SECONDS: float = 60.0  # clock-skew tolerance on trade timestamps
    ANALYTICS_WORKER_THREADS: int = 1

    # === Database ===
    DATABASE_URL: str = "sqlite:///data/polytracker.db"

    # === Logging ===
    LOG_LEVEL: str = "INFO"

    model_config = {"env_file": ".env"}


settings = Settings()
