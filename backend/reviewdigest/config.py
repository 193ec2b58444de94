"""Application configuration via environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Bounds for the user-adjustable crawl caps
MIN_PAGES_CAP = 5
MAX_PAGES_CAP = 100
MIN_REVIEW_CAP = 200
MAX_REVIEW_CAP = 2500


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "Review Digest"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Redis (session, consent, cache and key-health records)
    redis_url: str = "redis://localhost:6379/0"

    # CORS
    cors_origins: list[str] = ["http://localhost:5173"]

    # Browser
    user_agent: str = "review-digest/1.0"
    playwright_ws_url: str | None = None  # None launches a local headless Chromium

    # Crawl caps (clamped to 5-100 pages, 200-2500 reviews)
    max_pages_cap: int = 60
    max_review_count: int = 1200

    # Crawl pacing
    crawl_delay_ms: int = 1200  # mean delay between pages
    crawl_jitter_ms: int = 300
    crawl_min_delay_ms: int = 500
    settle_delay_ms: int = 600  # when already on the target page
    navigation_timeout_seconds: float = 30.0
    extract_timeout_seconds: float = 10.0
    extract_attempts: int = 3
    extract_backoff_base_ms: int = 300
    extract_backoff_cap_ms: int = 2000
    loop_lease_seconds: int = 300  # a running flag older than this is stale

    # Summary cache
    cache_ttl_days: int = 7

    # Summarization
    fallback_mode: bool = False  # force the local heuristic summarizer
    llm_provider: Literal["openai", "anthropic", "gemini"] = "openai"
    llm_model: str | None = None  # provider default when unset
    openai_api_key: str | None = None
    anthropic_api_key: str | None = None
    gemini_api_key: str | None = None
    remote_min_interval_ms: int = 3000  # at most one remote request per 3s

    # Key health
    key_health_interval_hours: int = 6

    @property
    def llm_api_key(self) -> str | None:
        """API key for the configured provider."""
        return {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "gemini": self.gemini_api_key,
        }.get(self.llm_provider)

    def compute_max_pages(self) -> int:
        """Configured page cap clamped to the supported range."""
        return max(MIN_PAGES_CAP, min(MAX_PAGES_CAP, self.max_pages_cap))

    def compute_max_reviews(self) -> int:
        """Configured review cap clamped to the supported range."""
        return max(MIN_REVIEW_CAP, min(MAX_REVIEW_CAP, self.max_review_count))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
