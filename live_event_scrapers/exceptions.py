from pathlib import Path
from typing import Optional


class ScraperError(Exception):
    """Base class for errors raised by the scrapers."""


class PageLoadError(ScraperError):
    """A page could not be loaded within the configured timeout."""

    def __init__(self, url: str, reason: str, timed_out: bool = False):
        self.url = url
        self.reason = reason
        self.timed_out = timed_out
        super().__init__(f"Failed to load {url}: {reason}")


class WorklistMissingError(ScraperError):
    """The listing records a detail run needs were never produced."""

    def __init__(self, path: Path, reason: Optional[str] = None):
        self.path = path
        self.reason = reason or "file not found"
        super().__init__(f"Listing worklist unavailable at {path}: {self.reason}")
