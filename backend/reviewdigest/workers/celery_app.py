"""Celery application configuration."""

import json
import logging
import sys
from datetime import datetime, timezone

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging, worker_ready

from reviewdigest.config import get_settings

settings = get_settings()


class JsonFormatter(logging.Formatter):
    """One JSON object per log line, with level and logger name."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


@setup_logging.connect
def configure_logging(**kwargs):
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(logging.INFO)

    celery_logger = logging.getLogger("celery")
    celery_logger.handlers.clear()
    celery_logger.addHandler(handler)
    celery_logger.setLevel(logging.INFO)
    celery_logger.propagate = False

    app_logger = logging.getLogger("reviewdigest")
    app_logger.handlers.clear()
    app_logger.addHandler(handler)
    app_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    app_logger.propagate = False




celery_app = Celery(
    "reviewdigest",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["reviewdigest.workers.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # One browser per worker process
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
    worker_hijack_root_logger=False,
    worker_redirect_stdouts=True,
    worker_redirect_stdouts_level="INFO",
    result_expires=3600,
    beat_schedule={
        "check-key-health": {
            "task": "reviewdigest.workers.tasks.check_key_health",
            "schedule": crontab(minute=0, hour=f"*/{settings.key_health_interval_hours}"),
            "kwargs": {"trigger": "scheduled"},
        },
    },
)


@worker_ready.connect
def check_key_health_on_startup(sender=None, **kwargs):
    celery_app.send_task(
        "reviewdigest.workers.tasks.check_key_health",
        kwargs={"trigger": "startup"},
    )
