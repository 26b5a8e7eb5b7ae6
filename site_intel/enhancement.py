# site_intel/enhancement.py
"""
Enhancement escalator.

Re-fetches flagged pages with a heavier strategy in small batches.  A
successful re-fetch replaces the original record at its original position;
a failure keeps the original.  A weak page is better than a missing one.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from site_intel.errors import EnhancementFailure
from site_intel.events import EventBus, Phase
from site_intel.executor import BatchExecutor, Sleep, StopCheck
from site_intel.logger import logger
from site_intel.models import FlaggedPage, PageRecord
from site_intel.policy import FailurePolicy
from site_intel.strategies.base import FetchStrategy, SiteMetadata
from site_intel.utils import normalize_url


@dataclass(slots=True)
class EnhancementOutcome:
    pages: List[PageRecord] = field(default_factory=list)
    enhanced: List[str] = field(default_factory=list)
    failures: List[EnhancementFailure] = field(default_factory=list)
    attempted: int = 0
    exhausted: bool = False
    duration_ms: int = 0

    @property
    def enhancement_count(self) -> int:
        return len(self.enhanced)


class EnhancementEscalator:
    """Replaces weak records with heavier-strategy re-fetches, position for position."""

    def __init__(
        self,
        strategy: FetchStrategy,
        *,
        batch_size: int = 2,
        timeout: float = 30.0,
        batch_delay: float = 0.5,
        max_failures: Optional[int] = None,
        bus: Optional[EventBus] = None,
        sleep: Sleep = asyncio.sleep,
        should_stop: Optional[StopCheck] = None,
    ) -> None:
        self.strategy = strategy
        self.policy = FailurePolicy(Phase.ENHANCEMENT.value, max_failures=max_failures)
        self.executor = BatchExecutor(
            strategy,
            phase=Phase.ENHANCEMENT,
            batch_size=batch_size,
            timeout=timeout,
            batch_delay=batch_delay,
            policy=self.policy,
            bus=bus,
            sleep=sleep,
            should_stop=should_stop,
        )

    async def enhance(
        self,
        pages: Sequence[PageRecord],
        flagged: Sequence[FlaggedPage],
        *,
        site: Optional[SiteMetadata] = None,
    ) -> EnhancementOutcome:
        """Return *pages* with every successfully re-fetched flagged record swapped in place."""
        final = list(pages)
        outcome = EnhancementOutcome(pages=final)
        if not flagged:
            return outcome

        positions: Dict[str, int] = {normalize_url(p.url): i for i, p in enumerate(final)}
        targets = [f for f in flagged if normalize_url(f.page.url) in positions]
        for f in flagged:
            if normalize_url(f.page.url) not in positions:
                logger.warning("Flagged page %s is not in the page list; ignored", f.page.url)

        logger.info("Enhancement: %d pages with %s strategy", len(targets), self.strategy.name)
        result = await self.executor.run(
            [f.page.url for f in targets],
            site=site,
            context={"reasons": {f.page.url: f.reason for f in targets}},
        )
        outcome.attempted = result.attempted
        outcome.exhausted = result.exhausted
        outcome.duration_ms = result.duration_ms

        failed = dict(self.policy.failures)
        for target, record in zip(targets, result.records):
            if record is None:
                reason = failed.get(target.page.url, "not attempted")
                outcome.failures.append(EnhancementFailure(target.page.url, reason))
                logger.info("Keeping original record for %s (%s)", target.page.url, reason)
                continue
            final[positions[normalize_url(target.page.url)]] = record
            outcome.enhanced.append(target.page.url)

        logger.info(
            "Enhancement finished: %d replaced, %d kept original",
            outcome.enhancement_count,
            len(outcome.failures),
        )
        return outcome


__all__ = ["EnhancementEscalator", "EnhancementOutcome"]
