"""Celery task definitions.

These tasks are thin wrappers that call into the service layer.
The actual business logic lives in the services module.
"""

import asyncio
import logging

from celery.exceptions import SoftTimeLimitExceeded

from reviewdigest.config import get_settings
from reviewdigest.models import FinishReason
from reviewdigest.workers.celery_app import celery_app

settings = get_settings()
logger = logging.getLogger(__name__)


async def _run_crawl() -> dict:
    from reviewdigest.services.browser import open_page_driver
    from reviewdigest.services.factory import build_orchestrator

    async with open_page_driver(settings) as driver:
        orchestrator = build_orchestrator(settings, driver)
        session = await orchestrator.run()

    if session is None:
        return {"status": "no_session"}
    return {
        "status": session.status.value,
        "session_id": session.session_id,
        "pages_crawled": session.pages_crawled,
        "review_count": session.review_count,
        "finished_reason": session.finished_reason.value if session.finished_reason else None,
    }


async def _finalize_after_timeout() -> None:
    from reviewdigest.services.factory import build_finalizer, get_redis_client
    from reviewdigest.services.progress import ProgressService
    from reviewdigest.services.session_store import SessionStateStore
    from reviewdigest.services.transitions import release

    redis_client = get_redis_client(settings)
    finalizer = build_finalizer(settings, redis_client, ProgressService(redis_client=redis_client))
    await finalizer.finalize(FinishReason.ERROR)
    SessionStateStore(redis_client=redis_client).mutate(release)


@celery_app.task(soft_time_limit=3600, time_limit=3660)
def run_crawl_session() -> dict:
    """Run the crawl loop for the stored session until it finishes.

    A second dispatch while a loop holds the session is a no-op.
    """
    try:
        return asyncio.run(_run_crawl())
    except SoftTimeLimitExceeded:
        logger.error("Crawl loop timed out (1 hour limit)")
        asyncio.run(_finalize_after_timeout())
        return {"error": "Crawl timed out", "status": "failed"}


@celery_app.task(soft_time_limit=60, time_limit=90)
def check_key_health(trigger: str = "scheduled") -> dict:
    """Periodic task: validate the configured summarization key."""
    from reviewdigest.services.key_health import KeyHealthMonitor

    health = KeyHealthMonitor(settings=settings).check(trigger)
    return health.model_dump(mode="json")
