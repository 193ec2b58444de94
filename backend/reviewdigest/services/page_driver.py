"""Interface between the crawl loop and the page it drives."""

from typing import Protocol

from reviewdigest.models import PageExtraction


class PageDriver(Protocol):
    """A single browser page the orchestrator navigates and extracts from.

    ``extract`` must be idempotent and leave the page untouched.
    """

    @property
    def current_url(self) -> str | None:
        ...

    async def navigate(self, url: str) -> None:
        """Load ``url`` and return once the page has finished loading."""
        ...

    async def extract(self) -> PageExtraction | None:
        ...

    async def close(self) -> None:
        ...
