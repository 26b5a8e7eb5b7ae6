# site_intel/executor.py
"""
Batch fetch executor.

Fetches URLs in fixed-size batches with one strategy.  Within a batch the
fetches run concurrently (or one by one for stateful strategies); batches run
strictly one after another with a delay in between.  The output holds one slot
per input URL in input order: a :class:`~site_intel.models.PageRecord`, or
``None`` when the fetch failed or returned no content.  A policy in ``skip``
mode drops those ``None`` slots instead.

Empty pages are not escalated here; that is the validator's and enhancement
phase's job.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence

from site_intel.errors import TooManyFailures
from site_intel.events import EventBus, Phase
from site_intel.logger import logger
from site_intel.models import PageRecord
from site_intel.policy import FailurePolicy
from site_intel.strategies.base import FetchStrategy, SiteMetadata
from site_intel.utils import chunked

Sleep = Callable[[float], Awaitable[None]]
StopCheck = Callable[[], bool]


@dataclass(slots=True)
class BatchOutcome:
    """Result slots plus bookkeeping for one executor run."""

    records: List[Optional[PageRecord]] = field(default_factory=list)
    batch_sizes: List[int] = field(default_factory=list)
    attempted: int = 0
    stopped_early: bool = False
    exhausted: bool = False
    duration_ms: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.records if r is not None)

    @property
    def failed(self) -> int:
        return self.attempted - self.succeeded

    def pages(self) -> List[PageRecord]:
        return [r for r in self.records if r is not None]


class BatchExecutor:
    """Bounded-concurrency fetcher for one phase."""

    def __init__(
        self,
        strategy: FetchStrategy,
        *,
        phase: Phase = Phase.RAPID_SCRAPE,
        batch_size: int = 5,
        timeout: float = 30.0,
        batch_delay: float = 0.5,
        policy: Optional[FailurePolicy] = None,
        bus: Optional[EventBus] = None,
        sleep: Sleep = asyncio.sleep,
        should_stop: Optional[StopCheck] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.strategy = strategy
        self.phase = phase
        self.batch_size = batch_size
        self.timeout = timeout
        self.batch_delay = batch_delay
        self.policy = policy or FailurePolicy(phase.value)
        self.bus = bus
        self._sleep = sleep
        self._should_stop = should_stop or (lambda: False)

    async def run(
        self,
        urls: Sequence[str],
        *,
        site: Optional[SiteMetadata] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> BatchOutcome:
        started = time.monotonic()
        outcome = BatchOutcome(records=[None] * len(urls))
        batches = list(chunked(list(range(len(urls))), self.batch_size))
        logger.info(
            "[%s] %d URLs in %d batches of up to %d (%s strategy)",
            self.phase.value, len(urls), len(batches), self.batch_size, self.strategy.name,
        )

        for number, indexes in enumerate(batches, start=1):
            if self._should_stop():
                logger.info("[%s] stop requested; %d batches not started", self.phase.value, len(batches) - number + 1)
                outcome.stopped_early = True
                break
            if number > 1 and self.batch_delay > 0:
                await self._sleep(self.batch_delay)

            batch_started = time.monotonic()
            outcome.batch_sizes.append(len(indexes))
            outcome.attempted += len(indexes)
            try:
                await self._run_batch(urls, indexes, outcome, site, context)
            except TooManyFailures as exc:
                logger.error("[%s] %s; no further batches", self.phase.value, exc)
                outcome.exhausted = True
                break
            finally:
                ok = sum(1 for i in indexes if outcome.records[i] is not None)
                logger.info(
                    "[%s] batch %d/%d: %d ok, %d failed in %d ms",
                    self.phase.value, number, len(batches), ok, len(indexes) - ok,
                    int((time.monotonic() - batch_started) * 1000),
                )
            if self.bus is not None:
                done = sum(outcome.batch_sizes)
                await self.bus.progress(
                    self.phase, done, len(urls), source=f"{self.phase.value}:batch-{number}",
                    batch=number, batches=len(batches),
                    succeeded=outcome.succeeded, failed=outcome.failed,
                )

        if not self.policy.keeps_placeholders:
            outcome.records = [r for r in outcome.records if r is not None]
        outcome.duration_ms = int((time.monotonic() - started) * 1000)
        return outcome

    async def _run_batch(
        self,
        urls: Sequence[str],
        indexes: Sequence[int],
        outcome: BatchOutcome,
        site: Optional[SiteMetadata],
        context: Optional[Mapping[str, Any]],
    ) -> None:
        if self.strategy.stateful:
            for index in indexes:
                outcome.records[index] = await self._fetch_one(urls[index], site, context)
            return
        results = await asyncio.gather(
            *(self._fetch_one(urls[i], site, context) for i in indexes),
            return_exceptions=True,
        )
        overflow: Optional[TooManyFailures] = None
        for index, result in zip(indexes, results):
            if isinstance(result, TooManyFailures):
                overflow = overflow or result
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome.records[index] = result
        if overflow is not None:
            raise overflow

    async def _fetch_one(
        self,
        url: str,
        site: Optional[SiteMetadata],
        context: Optional[Mapping[str, Any]],
    ) -> Optional[PageRecord]:
        try:
            record = await asyncio.wait_for(self.strategy.fetch(url, context, site), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.policy.record(url, f"timed out after {self.timeout:g}s")
            return None
        except Exception as exc:
            # any strategy failure costs only this slot
            self.policy.record(url, exc)
            return None
        if record is None or record.is_empty:
            self.policy.record(url, "empty content")
            return None
        if self.bus is not None:
            await self.bus.data(self.phase, _page_event(record), source=f"{self.phase.value}:{url}")
        return record


def _page_event(record: PageRecord) -> Dict[str, Any]:
    return {
        "url": record.url,
        "title": record.title,
        "strategy": record.strategy,
        "payload": record.payload.kind,
        "textLength": len(record.text),
    }


__all__ = ["BatchExecutor", "BatchOutcome"]
