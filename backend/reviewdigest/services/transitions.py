"""Pure state transitions for a crawl session.

Each function takes a session and returns an updated copy, or raises
InvalidTransition. They never touch storage, so the store can apply them
atomically and tests can call them directly.
"""

from datetime import datetime

from reviewdigest.exceptions import InvalidTransition
from reviewdigest.models import CrawlSession, FinishReason, Summary


def acquire(session: CrawlSession, now: datetime, lease_seconds: float) -> CrawlSession:
    """Take the loop guard. Idle (or stale running) -> running."""
    if session.finished:
        raise InvalidTransition(f"Session {session.session_id} is finished")
    if session.cancelled:
        raise InvalidTransition(f"Session {session.session_id} is cancelled")
    if session.running and not session.lease_is_stale(now, lease_seconds):
        raise InvalidTransition(f"Session {session.session_id} is already running")
    return session.model_copy(update={"running": True, "heartbeat_at": now})


def heartbeat(session: CrawlSession, now: datetime) -> CrawlSession:
    """Refresh the running lease."""
    return session.model_copy(update={"heartbeat_at": now})


def release(session: CrawlSession) -> CrawlSession:
    """Drop the loop guard. Always allowed."""
    return session.model_copy(update={"running": False, "heartbeat_at": None})


def request_cancel(session: CrawlSession) -> CrawlSession:
    """Flag the session for cancellation at the next iteration boundary."""
    if session.finished:
        raise InvalidTransition(f"Session {session.session_id} is already finished")
    return session.model_copy(update={"cancelled": True})


def finish(
    session: CrawlSession,
    reason: FinishReason,
    summary: Summary,
    force_refresh: bool = False,
) -> CrawlSession:
    """Record a computed summary and mark the session terminal.

    Args:
        session: The session to finish.
        reason: Why the crawl stopped. Ignored on refresh.
        summary: The freshly computed summary.
        force_refresh: Replace the summary of an already finished session.

    Returns:
        The finished session. The summary it replaces is kept as
        previous_summary and a refreshed session keeps its original reason.

    Raises:
        InvalidTransition: The session is already finished and this is not
            a refresh.
    """
    if session.finished and not force_refresh:
        raise InvalidTransition(f"Session {session.session_id} is already finished")
    return session.model_copy(
        update={
            "finished": True,
            "finished_reason": session.finished_reason if session.finished else reason,
            "summary": summary,
            "previous_summary": session.summary,
        }
    )


def swap_summaries(session: CrawlSession) -> CrawlSession:
    """One-level undo: exchange summary and previous_summary."""
    if session.previous_summary is None:
        raise InvalidTransition("No previous summary to restore")
    return session.model_copy(
        update={
            "summary": session.previous_summary,
            "previous_summary": session.summary,
        }
    )
