# site_intel/policy.py
"""
Retry/continue policy shared by the fetch phases.

One :class:`FailurePolicy` instance per phase is the only place where a fetch
error is caught, logged and turned into a result slot.  The policy counts
failures and, once ``max_failures`` is exceeded, raises
:class:`~site_intel.errors.TooManyFailures` so the phase stops starting new
work while keeping what it already has.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from site_intel.errors import TooManyFailures
from site_intel.logger import logger


class FailureMode(str, Enum):
    PLACEHOLDER = "placeholder"  # failed URL keeps its slot as None
    SKIP = "skip"  # failed URL is dropped from the output


class FailurePolicy:
    """Counts per-phase failures and decides what a failed slot becomes."""

    def __init__(
        self,
        phase: str,
        *,
        max_failures: Optional[int] = None,
        mode: FailureMode = FailureMode.PLACEHOLDER,
    ) -> None:
        self.phase = phase
        self.max_failures = max_failures
        self.mode = mode
        self.failures: List[Tuple[str, str]] = []

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def exhausted(self) -> bool:
        return self.max_failures is not None and self.failure_count > self.max_failures

    @property
    def keeps_placeholders(self) -> bool:
        return self.mode is FailureMode.PLACEHOLDER

    def record(self, url: str, error: BaseException | str) -> None:
        """Log and count one failure; raise TooManyFailures when over budget."""
        reason = str(error) or type(error).__name__
        self.failures.append((url, reason))
        logger.warning("[%s] %s failed: %s", self.phase, url, reason)
        if self.exhausted:
            raise TooManyFailures(self.phase, self.failure_count)

    def failed_urls(self) -> List[str]:
        return [url for url, _ in self.failures]


__all__ = ["FailurePolicy", "FailureMode"]
