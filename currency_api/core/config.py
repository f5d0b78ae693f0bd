from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    EXCHANGE_RATE_API_KEY, RATE_CACHE_TTL_MINUTES, CATALOG_SNAPSHOT_PATH).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Basic app metadata
    app_name: str = "Currency Converter API"
    debug: bool = False
    version: str = "0.1.0"

    # Upstream services
    exchange_rate_api_key: str = ""
    exchange_api_base_url: str = "https://v6.exchangerate-api.com/v6"
    countries_api_base_url: str = "https://restcountries.com/v3.1"
    http_timeout_seconds: float = 30.0

    # Exchange rate provider
    # Allowed: 'static' (built-in fixed table), 'exchangerate-api' (live, needs API key)
    exchange_rate_provider: str = "static"

    # Caching (rates follow the provider's hourly update cadence)
    rate_cache_ttl_minutes: float = 60
    rate_cache_max_size: int = 1000
    country_cache_ttl_minutes: float = 24 * 60
    country_cache_max_size: int = 500
    cache_cleanup_interval_minutes: float = 5

    # Currency catalog
    catalog_refresh_hours: float = 24
    catalog_snapshot_path: Optional[Path] = None
    refresh_catalog_on_startup: bool = True

    # Rate limiting (~30,000 provider calls per month)
    enable_rate_limit: bool = True
    requests_per_day: int = 1000

    def init_post_load(self) -> None:
        """Validate cache and limiter policy values."""
        for name in ("rate_cache_max_size", "country_cache_max_size"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        for name in ("rate_cache_ttl_minutes", "country_cache_ttl_minutes"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.cache_cleanup_interval_minutes <= 0:
            raise ValueError("cache_cleanup_interval_minutes must be positive")
        if self.requests_per_day < 1:
            raise ValueError("requests_per_day must be at least 1")
        # Normalize / validate provider
        allowed = {"static", "exchangerate-api"}
        if self.exchange_rate_provider not in allowed:
            raise ValueError(
                f"Unsupported exchange_rate_provider '{self.exchange_rate_provider}'. Allowed: {allowed}"
            )
        if self.exchange_rate_provider == "exchangerate-api" and not self.exchange_rate_api_key:
            raise ValueError("EXCHANGE_RATE_API_KEY not set")
        self.exchange_api_base_url = self.exchange_api_base_url.rstrip("/")
        self.countries_api_base_url = self.countries_api_base_url.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
