"""Exception types raised by the crawl services."""


class ReviewDigestError(Exception):
    """Base class for service errors."""


class NavigationTimeout(ReviewDigestError):
    """The page did not finish loading within the navigation timeout."""


class ExtractionFailed(ReviewDigestError):
    """The page extractor failed on every attempt."""


class InvalidTransition(ReviewDigestError):
    """A session state change is not allowed from the current state."""


class SummarizerError(ReviewDigestError):
    """A remote summarization call failed or returned an unusable payload."""
