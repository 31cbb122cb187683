"""Application configuration."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# backend/.env, next to instruments.yaml
_ENV_PATH = Path(__file__).parent.parent / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = "postgresql://localhost/market_signals"

    # Quote provider (Finnhub)
    finnhub_api_key: str = ""
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    quote_timeout: float = 10.0
    quote_calls_per_minute: int = 60

    # Instrument catalog
    catalog_path: str = ""  # Empty = instruments.yaml next to the package

    # Pipeline
    refresh_interval: float = 30.0  # Seconds between scheduled cycles
    random_seed: int | None = None
    premium_instruments: dict[str, int] = {"XAUUSD": 15}
    signal_timeframe: str = "1h"

    # Notifications
    notification_threshold: int = 80
    urgent_threshold: int = 90

    # Distribution
    snapshot_notifications: int = 50
    subscriber_buffer: int = 256

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    backend/.env is loaded into os.environ first, so it applies no matter
    which directory the service is started from. Real environment
    variables take precedence over it.
    """
    load_dotenv(_ENV_PATH, override=False)
    return Settings()
