# site_intel/errors.py
"""
Exception hierarchy for the SiteIntel pipeline.
"""
from __future__ import annotations

from typing import Optional


class SiteIntelError(Exception):
    """Base class for all pipeline errors."""


class NetworkError(SiteIntelError):
    """Timeout, connection failure or unusable HTTP status for one URL."""

    def __init__(self, url: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status = status


class ParseError(SiteIntelError):
    """Malformed sitemap or HTML document."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class EnhancementFailure(SiteIntelError):
    """The heavier strategy could not produce a better record."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class TooManyFailures(SiteIntelError):
    """Raised by a FailurePolicy once its failure budget is exhausted."""

    def __init__(self, phase: str, failures: int) -> None:
        super().__init__(f"phase '{phase}' exceeded failure budget ({failures} failures)")
        self.phase = phase
        self.failures = failures


class StreamClosedError(SiteIntelError):
    """Write attempted on a stream that is already closed."""


class StreamWriteError(SiteIntelError):
    """Non-benign failure while writing to an event stream."""


class PersistenceError(SiteIntelError):
    """The session store rejected a checkpoint."""


__all__ = [
    "SiteIntelError",
    "NetworkError",
    "ParseError",
    "EnhancementFailure",
    "TooManyFailures",
    "StreamClosedError",
    "StreamWriteError",
    "PersistenceError",
]
