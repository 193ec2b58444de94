"""Business logic services."""

from reviewdigest.services.consent_store import ConsentStore
from reviewdigest.services.crawl_service import CrawlService
from reviewdigest.services.finalizer import Finalizer
from reviewdigest.services.key_health import KeyHealthMonitor
from reviewdigest.services.orchestrator import CrawlOrchestrator
from reviewdigest.services.progress import ProgressService
from reviewdigest.services.robots import RobotsPolicyEvaluator
from reviewdigest.services.session_store import SessionStateStore
from reviewdigest.services.summarizers import get_summarizer
from reviewdigest.services.summary_cache import SummaryCache

__all__ = [
    "ConsentStore",
    "CrawlOrchestrator",
    "CrawlService",
    "Finalizer",
    "KeyHealthMonitor",
    "ProgressService",
    "RobotsPolicyEvaluator",
    "SessionStateStore",
    "SummaryCache",
    "get_summarizer",
]
