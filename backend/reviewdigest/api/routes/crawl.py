"""Crawl session routes."""

from typing import Any

from fastapi import APIRouter
from pydantic import BaseModel, Field

from reviewdigest.api.deps import Crawls, Progress
from reviewdigest.config import MAX_PAGES_CAP, MIN_PAGES_CAP
from reviewdigest.models import ConsentFields
from reviewdigest.services.crawl_service import (
    AnalyzeResult,
    OperationResult,
    StartCrawlResult,
    TabContext,
)

router = APIRouter()


class ConsentRequest(BaseModel):
    """Consent dialog submission."""

    url: str
    consent: ConsentFields
    max_pages: int | None = Field(default=None, ge=MIN_PAGES_CAP, le=MAX_PAGES_CAP)


class AnalyzeRequest(BaseModel):
    url: str


@router.post("/crawl/start", response_model=StartCrawlResult)
async def start_crawl(tab: TabContext, crawls: Crawls) -> StartCrawlResult:
    """Start a crawl, or report that consent is required first."""
    return await crawls.start_crawl(tab)


@router.post("/crawl/consent", response_model=StartCrawlResult)
async def submit_consent(request: ConsentRequest, crawls: Crawls) -> StartCrawlResult:
    return await crawls.submit_consent(
        TabContext(url=request.url),
        request.consent,
        requested_max_pages=request.max_pages,
    )


@router.post("/crawl/cancel", response_model=OperationResult)
async def cancel_crawl(crawls: Crawls) -> OperationResult:
    return await crawls.cancel()


@router.post("/crawl/stop", response_model=OperationResult)
async def stop_and_summarize(crawls: Crawls) -> OperationResult:
    """Stop early and summarize the reviews gathered so far."""
    return await crawls.stop_and_summarize_now()


@router.post("/crawl/refresh", response_model=OperationResult)
async def refresh_summary(crawls: Crawls) -> OperationResult:
    return await crawls.refresh_summary()


@router.post("/crawl/undo", response_model=OperationResult)
async def undo_summary(crawls: Crawls) -> OperationResult:
    return await crawls.undo_summary()


@router.post("/crawl/resume", response_model=OperationResult)
async def resume_crawl(crawls: Crawls) -> OperationResult:
    return await crawls.resume()


@router.get("/crawl/session")
async def get_session(crawls: Crawls) -> dict[str, Any]:
    return crawls.status()


@router.get("/crawl/progress")
async def get_progress(progress: Progress) -> dict[str, Any]:
    """Latest per-page progress event, polled by the UI."""
    return progress.get_progress() or {}


@router.get("/crawl/result")
async def get_result(progress: Progress) -> dict[str, Any]:
    """Latest finished event, including undo re-emits and key health alerts."""
    return {
        "finished": progress.get_finished(),
        "key_health_alert": progress.get_key_health_alert(),
    }


@router.post("/analyze", response_model=AnalyzeResult)
async def analyze_page(request: AnalyzeRequest, crawls: Crawls) -> AnalyzeResult:
    """Summarize a single page of reviews without a crawl session."""
    return await crawls.analyze_single_page(request.url)


@router.delete("/cache", response_model=OperationResult)
async def clear_cache(crawls: Crawls) -> OperationResult:
    return crawls.clear_cache()
