"""Global consent record, kept in Redis."""

import logging

import redis

from reviewdigest.config import Settings, get_settings
from reviewdigest.models import ConsentRecord
from reviewdigest.services.robots import RobotsDecision

logger = logging.getLogger(__name__)

CONSENT_KEY = "global_consent"


def may_skip_consent(record: ConsentRecord | None, robots: RobotsDecision) -> bool:
    """Whether a new session can start without showing the consent dialog.

    Requires a global acceptance, and for robots-disallowed paths a prior
    explicit acknowledgement of the disallow rule.
    """
    if record is None or not record.accepted:
        return False
    return not robots.disallowed or record.disallow_acknowledged


class ConsentStore:
    """Stores the one-time global consent record."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        settings: Settings | None = None,
    ):
        if redis_client is None:
            settings = settings or get_settings()
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        self.redis = redis_client

    def get(self) -> ConsentRecord | None:
        data = self.redis.get(CONSENT_KEY)
        if data:
            return ConsentRecord.model_validate_json(data)
        return None

    def set_global(self, record: ConsentRecord) -> None:
        self.redis.set(CONSENT_KEY, record.model_dump_json())

    def record_acceptance(self, disallow_acknowledged: bool) -> ConsentRecord:
        """Persist an interactive acceptance.

        The first acceptance creates the global record. Later acceptances only
        upgrade it when the user newly acknowledged a robots disallow rule;
        the original acceptance time is preserved.
        """
        existing = self.get()
        if existing is None:
            record = ConsentRecord(disallow_acknowledged=disallow_acknowledged)
            self.set_global(record)
            logger.info("Stored global consent")
            return record

        if disallow_acknowledged and not existing.disallow_acknowledged:
            record = existing.model_copy(update={"disallow_acknowledged": True})
            self.set_global(record)
            logger.info("Upgraded global consent with robots disallow acknowledgement")
            return record

        return existing

    def clear(self) -> None:
        self.redis.delete(CONSENT_KEY)
