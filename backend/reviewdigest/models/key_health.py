"""Health record for the configured summarization credential."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class KeyHealthStatus(str, Enum):
    VALID = "valid"
    INVALID = "invalid"
    QUOTA_EXHAUSTED = "quota_exhausted"
    ERROR = "error"
    NETWORK_ERROR = "network_error"
    MISSING = "missing"


# Statuses that raise an alert for the UI
ALERT_STATUSES = {
    KeyHealthStatus.INVALID,
    KeyHealthStatus.QUOTA_EXHAUSTED,
    KeyHealthStatus.ERROR,
}


class KeyHealth(BaseModel):
    """Outcome of the latest credential check."""

    status: KeyHealthStatus
    message: str
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    trigger: str | None = None  # startup, scheduled, manual, test

    @property
    def is_alert(self) -> bool:
        return self.status in ALERT_STATUSES
