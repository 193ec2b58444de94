"""robots.txt policy evaluation.

Only ``Disallow:`` prefixes are checked; ``Allow:`` overrides are not modeled.
Decisions are never cached because site policy may change between sessions.
"""

import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

logger = logging.getLogger(__name__)

DISALLOW_PATTERN = re.compile(r"^Disallow:\s*(\S*)", re.IGNORECASE)
SNIPPET_LENGTH = 500


@dataclass
class RobotsDecision:
    """Result of checking a page path against the site's robots.txt."""
    fetched_ok: bool
    disallowed: bool = False
    error_message: str | None = None
    snippet: str | None = None  # leading excerpt of the policy

    @property
    def summary(self) -> str:
        if not self.fetched_ok:
            return f"robots.txt not fetched: {self.error_message or 'unknown error'}"
        if self.disallowed:
            return "robots.txt indicates one or more Disallow rules may apply to this path."
        return "robots.txt fetched: no disallow detected for this path."


def is_path_disallowed(policy_text: str, path: str) -> bool:
    """Check a request path against every Disallow line, first match wins.

    A bare ``/`` rule blocks the whole site except the root path itself.
    """
    path = path or "/"
    for line in policy_text.splitlines():
        match = DISALLOW_PATTERN.match(line.strip())
        if not match:
            continue
        rule = match.group(1).strip()
        if not rule:
            continue
        if rule == "/":
            if len(path) > 1:
                return True
            continue
        if path.startswith(rule):
            return True
    return False


class RobotsPolicyEvaluator:
    """Fetches and interprets a site's robots.txt for one page."""

    def __init__(self, timeout: float = 10.0, user_agent: str = "review-digest/1.0"):
        self.timeout = timeout
        self.user_agent = user_agent

    def robots_url(self, page_url: str) -> str:
        parsed = urlparse(page_url)
        return f"{parsed.scheme}://{parsed.netloc}/robots.txt"

    async def evaluate(self, page_url: str) -> RobotsDecision:
        """Evaluate the policy for a page.

        Fails open: if robots.txt cannot be fetched the path is treated as
        allowed and the error is reported back to the caller.
        """
        parsed = urlparse(page_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return RobotsDecision(fetched_ok=False, error_message="URL must use http:// or https://")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
            ) as client:
                response = await client.get(self.robots_url(page_url))
        except httpx.HTTPError as e:
            logger.warning(f"robots.txt fetch failed for {page_url}: {e}")
            return RobotsDecision(fetched_ok=False, error_message=str(e) or type(e).__name__)

        if not response.is_success:
            logger.warning(f"robots.txt returned HTTP {response.status_code} for {page_url}")
            return RobotsDecision(
                fetched_ok=False,
                error_message=f"robots.txt status {response.status_code}",
            )

        body = response.text
        disallowed = is_path_disallowed(body, parsed.path)
        if disallowed:
            logger.info(f"robots.txt disallows {parsed.path} on {parsed.netloc}")
        return RobotsDecision(
            fetched_ok=True,
            disallowed=disallowed,
            snippet=body[:SNIPPET_LENGTH],
        )
