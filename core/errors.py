"""
Error taxonomy for the scraping core.

Phase-level fatal errors (browser launch, anti-bot redirect during search,
navigation failure in collection) fail the job. Per-item errors during
enrichment and persistence are counted and never propagate past the item.
"""


class ScraperError(Exception):
    """Base class for every error raised by the scraping core."""


class ValidationError(ScraperError):
    """Rejected request shape. Raised before any job is created."""


class BrowserUnavailable(ScraperError):
    """The shared browser could not be launched or reached."""


class AntiBotDetected(ScraperError):
    """The site redirected to a login or verification page."""

    def __init__(self, url: str, message: str = None):
        self.url = url
        super().__init__(
            message or f"Hit verification/login page ({url}). Manual intervention required."
        )


class ScrapeTimeout(ScraperError):
    """Base for retryable timeouts."""


class NavigationTimeout(ScrapeTimeout):
    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} timed out after {timeout_ms}ms")


class ExtractionTimeout(ScrapeTimeout):
    def __init__(self, item_id: str, timeout_seconds: float):
        self.item_id = item_id
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Detail extraction for {item_id} timed out after {timeout_seconds}s")


class PersistenceError(ScraperError):
    """A single product could not be written to the store."""

    def __init__(self, item_id: str, cause: Exception):
        self.item_id = item_id
        self.cause = cause
        super().__init__(f"Failed to save product {item_id}: {cause}")


class InvalidTransition(ScraperError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid job status transition: {current} -> {target}")
