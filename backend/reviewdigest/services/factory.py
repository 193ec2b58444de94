"""Wiring of crawl services from configuration."""

import logging

import redis

from reviewdigest.config import Settings
from reviewdigest.services.consent_store import ConsentStore
from reviewdigest.services.crawl_service import CrawlService, Launcher
from reviewdigest.services.finalizer import Finalizer
from reviewdigest.services.orchestrator import CrawlOrchestrator
from reviewdigest.services.page_driver import PageDriver
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.rate_limit import RequestSpacer
from reviewdigest.services.robots import RobotsPolicyEvaluator
from reviewdigest.services.session_store import SessionStateStore
from reviewdigest.services.summarizers import get_summarizer
from reviewdigest.services.summary_cache import SummaryCache

logger = logging.getLogger(__name__)


def get_redis_client(settings: Settings) -> redis.Redis:
    return redis.from_url(settings.redis_url, decode_responses=True)


def build_finalizer(
    settings: Settings,
    redis_client: redis.Redis,
    progress: ProgressService,
) -> Finalizer:
    spacer = RequestSpacer(redis_client=redis_client, settings=settings)
    summarizer = get_summarizer(settings, spacer=spacer)
    logger.info(f"Using {summarizer.name} summarizer")
    return Finalizer(
        store=SessionStateStore(redis_client=redis_client),
        cache=SummaryCache(redis_client=redis_client, settings=settings),
        summarizer=summarizer,
        progress=progress,
    )


def build_orchestrator(
    settings: Settings,
    driver: PageDriver,
    redis_client: redis.Redis | None = None,
) -> CrawlOrchestrator:
    """Create an orchestrator bound to ``driver`` and the shared stores."""
    redis_client = redis_client or get_redis_client(settings)
    progress = ProgressService(redis_client=redis_client)
    return CrawlOrchestrator(
        store=SessionStateStore(redis_client=redis_client),
        driver=driver,
        finalizer=build_finalizer(settings, redis_client, progress),
        progress=progress,
        settings=settings,
    )


def build_crawl_service(
    settings: Settings,
    launcher: Launcher,
    redis_client: redis.Redis | None = None,
) -> CrawlService:
    redis_client = redis_client or get_redis_client(settings)
    progress = ProgressService(redis_client=redis_client)
    return CrawlService(
        store=SessionStateStore(redis_client=redis_client),
        consent_store=ConsentStore(redis_client=redis_client),
        robots=RobotsPolicyEvaluator(user_agent=settings.user_agent),
        finalizer=build_finalizer(settings, redis_client, progress),
        progress=progress,
        launcher=launcher,
        settings=settings,
    )
