"""Dependency injection for FastAPI routes."""

from functools import lru_cache
from typing import Annotated

import redis
from fastapi import Depends

from reviewdigest.config import Settings, get_settings
from reviewdigest.services.crawl_service import CrawlService
from reviewdigest.services.factory import build_crawl_service, get_redis_client
from reviewdigest.services.key_health import KeyHealthMonitor
from reviewdigest.services.progress import ProgressService


@lru_cache
def get_redis() -> redis.Redis:
    return get_redis_client(get_settings())


def _launch_crawl() -> None:
    from reviewdigest.workers.tasks import run_crawl_session

    run_crawl_session.delay()


def get_crawl_service(settings: Annotated[Settings, Depends(get_settings)]) -> CrawlService:
    return build_crawl_service(settings, launcher=_launch_crawl, redis_client=get_redis())


def get_progress(settings: Annotated[Settings, Depends(get_settings)]) -> ProgressService:
    return ProgressService(redis_client=get_redis(), settings=settings)


def get_key_health_monitor(settings: Annotated[Settings, Depends(get_settings)]) -> KeyHealthMonitor:
    return KeyHealthMonitor(redis_client=get_redis(), settings=settings)


# Type aliases for dependency injection
AppSettings = Annotated[Settings, Depends(get_settings)]
Crawls = Annotated[CrawlService, Depends(get_crawl_service)]
Progress = Annotated[ProgressService, Depends(get_progress)]
KeyHealthDep = Annotated[KeyHealthMonitor, Depends(get_key_health_monitor)]
