"""Periodic validation of the summarization API key."""

import logging

import httpx
import redis

from reviewdigest.config import Settings, get_settings
from reviewdigest.models import KeyHealth, KeyHealthStatus
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.rate_limit import RequestSpacer

logger = logging.getLogger(__name__)

KEY_HEALTH_KEY = "key_health"
MIN_KEY_LENGTH = 20

# Lightweight authenticated endpoints; listing models costs no tokens
VALIDATION_ENDPOINTS = {
    "openai": "https://api.openai.com/v1/models",
    "anthropic": "https://api.anthropic.com/v1/models",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/models",
}


def _request_kwargs(provider: str, api_key: str) -> dict:
    if provider == "openai":
        return {"headers": {"Authorization": f"Bearer {api_key}"}}
    if provider == "anthropic":
        return {"headers": {"x-api-key": api_key, "anthropic-version": "2023-06-01"}}
    return {"params": {"key": api_key}}


def classify_response(provider: str, status_code: int) -> tuple[KeyHealthStatus, str]:
    if 200 <= status_code < 300:
        return KeyHealthStatus.VALID, f"{provider} key validated"
    # Gemini answers 400 for a malformed or unknown key
    if status_code in (401, 403) or (provider == "gemini" and status_code == 400):
        return KeyHealthStatus.INVALID, "Invalid or expired key"
    if status_code == 429:
        return KeyHealthStatus.QUOTA_EXHAUSTED, "Quota / credits exhausted"
    return KeyHealthStatus.ERROR, f"API error with {provider} (HTTP {status_code})"


class KeyHealthMonitor:
    """Validates the configured key, stores the result, and raises alerts."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
        progress: ProgressService | None = None,
        spacer: RequestSpacer | None = None,
        timeout: float = 15.0,
    ):
        self.settings = settings or get_settings()
        if redis_client is None:
            redis_client = redis.from_url(self.settings.redis_url, decode_responses=True)
        self.redis = redis_client
        self.progress = progress or ProgressService(redis_client=self.redis)
        self.spacer = spacer or RequestSpacer(redis_client=self.redis, settings=self.settings)
        self.timeout = timeout

    def validate(self, api_key: str | None, trigger: str | None = None) -> KeyHealth:
        provider = self.settings.llm_provider
        if not api_key:
            return KeyHealth(status=KeyHealthStatus.MISSING, message="No key saved", trigger=trigger)

        try:
            response = httpx.get(
                VALIDATION_ENDPOINTS[provider],
                timeout=self.timeout,
                **_request_kwargs(provider, api_key),
            )
        except httpx.HTTPError as e:
            logger.warning(f"Key validation request failed: {e}")
            return KeyHealth(
                status=KeyHealthStatus.NETWORK_ERROR,
                message=str(e) or e.__class__.__name__,
                trigger=trigger,
            )

        status, message = classify_response(provider, response.status_code)
        return KeyHealth(status=status, message=message, trigger=trigger)

    def _store(self, health: KeyHealth) -> None:
        self.redis.set(KEY_HEALTH_KEY, health.model_dump_json())

    def get(self) -> KeyHealth | None:
        data = self.redis.get(KEY_HEALTH_KEY)
        if data:
            return KeyHealth.model_validate_json(data)
        return None

    def check(self, trigger: str) -> KeyHealth:
        """Validate the configured key and alert on a bad result."""
        health = self.validate(self.settings.llm_api_key, trigger=trigger)
        self._store(health)
        logger.info(f"Key health ({trigger}): {health.status.value}")
        if health.is_alert:
            logger.warning(f"Key health alert: {health.message}")
            self.progress.key_health_alert(health)
        return health

    def test_key(self, api_key: str | None) -> tuple[bool, KeyHealth | None, str]:
        """Validate a candidate key before the user saves it.

        Returns ``(ok, health, message)``; ``health`` is None when the key was
        rejected without a network call.
        """
        candidate = (api_key or self.settings.llm_api_key or "").strip()
        if len(candidate) < MIN_KEY_LENGTH:
            return False, None, "Key looks too short or missing."
        health = self.validate(candidate, trigger="test")
        self._store(health)
        return health.status == KeyHealthStatus.VALID, health, health.message

    def rate_limit_status(self) -> dict:
        """Spacing state of remote requests plus the latest key status."""
        status = self.spacer.status()
        health = self.get()
        if health is None:
            availability = "unknown"
        elif health.status == KeyHealthStatus.QUOTA_EXHAUSTED:
            availability = "quota_exceeded"
        elif health.is_alert:
            availability = "error"
        elif status["retry_after_ms"] > 0:
            availability = "rate_limited"
        else:
            availability = "available"
        status["status"] = availability
        return status
