# File: site_intel/engine.py
"""site_intel.engine: Оркестратор конвейера discovery → rapid-scrape → validation → enhancement → complete."""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Callable, Dict, List, Optional, Sequence

from site_intel.aggregator import aggregate_pages
from site_intel.config import PipelineConfig, RunMode, RunOptions
from site_intel.discovery import DiscoveryCoordinator
from site_intel.enhancement import EnhancementEscalator
from site_intel.errors import PersistenceError
from site_intel.events import (
    EventBus,
    NotificationType,
    Phase,
    PhaseStatus,
    PhaseTracker,
    Subscriber,
)
from site_intel.events.cache import Clock
from site_intel.executor import BatchExecutor, Sleep
from site_intel.http import HttpClient
from site_intel.logger import logger
from site_intel.models import (
    AggregatedDataset,
    DiscoveredURL,
    DiscoverySource,
    FlaggedPage,
    PageRecord,
    PipelineResult,
    RunSummary,
)
from site_intel.persistence import SessionStore
from site_intel.policy import FailurePolicy
from site_intel.strategies import (
    FetchStrategy,
    SiteMetadata,
    StaticStrategy,
    StrategyKind,
    StrategyRegistry,
    detect_technology,
    select_strategy,
)
from site_intel.utils import base_url_for, normalize_url, remove_duplicates
from site_intel.validator import ContentValidator

__all__ = ["Orchestrator", "SiteAnalyzer", "run_pipeline"]

#: homepage HTML → site metadata
SiteAnalyzer = Callable[[str], SiteMetadata]


class Orchestrator:
    """Фасад для CLI и тестов: один вызов run() на домен, результат всегда возвращается (возможно, частичный)."""

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        registry: Optional[StrategyRegistry] = None,
        store: Optional[SessionStore] = None,
        analyzer: Optional[SiteAnalyzer] = detect_technology,
        clock: Optional[Clock] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Инициализирует оркестратор с конфигурацией и необязательными внешними зависимостями."""
        self.config = config or PipelineConfig()
        self.registry = registry
        self.store = store
        self.analyzer = analyzer
        self.clock = clock
        self.sleep = sleep

    async def run(
        self,
        domain: str,
        options: Optional[RunOptions] = None,
        *,
        abort: Optional[asyncio.Event] = None,
        subscribers: Sequence[Subscriber] = (),
    ) -> PipelineResult:
        """Запускает конвейер для домена и возвращает PipelineResult.

        Ровно одно терминальное событие (complete или error) на запуск.
        """
        options = options or RunOptions()
        bus = EventBus(
            uuid.uuid4().hex,
            dedup_ttl=self.config.dedup_ttl,
            sweep_interval=self.config.sweep_interval,
            notification_window=self.config.notification_window,
            clock=self.clock,
        )
        for subscriber in subscribers:
            bus.subscribe(subscriber)

        timeout = options.timeout or self.config.timeout
        async with bus, HttpClient(
            user_agent=self.config.user_agent,
            timeout=timeout,
            retry_times=self.config.retry_times,
            sleep=self.sleep,
        ) as client:
            registry = self.registry or StrategyRegistry([StaticStrategy(client)])
            run = _Run(self, domain, options, bus, client, registry, abort or asyncio.Event())
            return await run.execute()


async def run_pipeline(
    domain: str,
    options: Optional[RunOptions] = None,
    config: Optional[PipelineConfig] = None,
    **kwargs,
) -> PipelineResult:
    """Shortcut: build an Orchestrator and run it once."""
    subscribers = kwargs.pop("subscribers", ())
    abort = kwargs.pop("abort", None)
    return await Orchestrator(config, **kwargs).run(domain, options, abort=abort, subscribers=subscribers)


class _Run:
    """Состояние одного запуска: фазы, страницы, сводка."""

    def __init__(
        self,
        owner: Orchestrator,
        domain: str,
        options: RunOptions,
        bus: EventBus,
        client: HttpClient,
        registry: StrategyRegistry,
        abort: asyncio.Event,
    ) -> None:
        self.config = owner.config
        self.store = owner.store
        self.analyzer = owner.analyzer
        self.sleep = owner.sleep
        self.options = options
        self.bus = bus
        self.client = client
        self.registry = registry
        self.abort = abort

        self.base_url = base_url_for(domain)
        self.max_pages = options.max_pages or self.config.max_pages
        self.timeout = options.timeout or self.config.timeout

        skips = options.effective_skips()
        if options.urls:
            skips.append(Phase.DISCOVERY)
        self.tracker = PhaseTracker(skips)

        self.started = time.monotonic()
        self.deadline = self.started + self.config.max_duration
        self.summary = RunSummary()
        self.current: Optional[Phase] = None
        self.phase_started: Dict[Phase, float] = {}
        self.phase_durations: Dict[str, int] = {}

        self.discovered: List[DiscoveredURL] = []
        self.homepage_html = ""
        self.site: Optional[SiteMetadata] = None
        self.strategy: Optional[FetchStrategy] = None
        self.previous_pages: List[PageRecord] = []
        self.pages: List[PageRecord] = []
        self.flagged: List[FlaggedPage] = []
        self.validation = None
        self.enhanced = False
        self.dataset: Optional[AggregatedDataset] = None

    # ------------------------------------------------------------------ #
    # top level
    # ------------------------------------------------------------------ #

    async def execute(self) -> PipelineResult:
        logger.info("Run %s started for %s (mode=%s)", self.bus.correlation_id, self.base_url, self.options.mode.value)
        try:
            await self._discovery()
            await self._rapid_scrape()
            await self._validation()
            await self._enhancement()
            await self._complete()
        except Exception as exc:
            await self._fatal(exc)
        self.summary.duration_ms = self._elapsed_ms()
        logger.info(
            "Run %s finished in %d ms: phases=%s, %d pages, partial=%s",
            self.bus.correlation_id,
            self.summary.duration_ms,
            self.summary.phases_run,
            len(self.dataset.pages) if self.dataset else 0,
            self.summary.partial,
        )
        return PipelineResult(
            dataset=self.dataset or AggregatedDataset(url=self.base_url),
            summary=self.summary,
            discovered=self.discovered,
            correlation_id=self.bus.correlation_id,
        )

    def should_stop(self) -> bool:
        if self.abort.is_set():
            self.summary.aborted = True
            return True
        if time.monotonic() >= self.deadline:
            if not self.summary.timed_out:
                logger.warning("Run time budget of %.0fs exhausted", self.config.max_duration)
            self.summary.timed_out = True
            return True
        return False

    def _elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started) * 1000)

    # ------------------------------------------------------------------ #
    # phase bookkeeping
    # ------------------------------------------------------------------ #

    async def _enter(self, phase: Phase, *, reason: str = "") -> bool:
        """Start *phase*, or mark it skipped; return True when it should run."""
        if self.tracker.should_skip(phase) or reason or self.should_stop():
            why = reason or ("requested" if self.tracker.should_skip(phase) else "stopped")
            self.tracker.skip(phase)
            logger.info("Phase %s skipped (%s)", phase.value, why)
            await self.bus.status(phase, PhaseStatus.SKIPPED, reason=why)
            return False
        self.tracker.start(phase)
        self.current = phase
        self.phase_started[phase] = time.monotonic()
        logger.info("Phase %s started", phase.value)
        await self.bus.status(phase, PhaseStatus.IN_PROGRESS)
        return True

    async def _leave(self, phase: Phase, *, failed: bool = False, **extra) -> None:
        duration = int((time.monotonic() - self.phase_started.get(phase, time.monotonic())) * 1000)
        self.phase_durations[phase.value] = duration
        if failed:
            self.tracker.fail(phase)
        else:
            self.tracker.complete(phase)
        self.current = None
        status = PhaseStatus.FAILED if failed else PhaseStatus.COMPLETE
        logger.info("Phase %s %s in %d ms", phase.value, status.value, duration)
        await self.bus.status(phase, status, durationMs=duration, **extra)

    # ------------------------------------------------------------------ #
    # phases
    # ------------------------------------------------------------------ #

    async def _discovery(self) -> None:
        if not await self._enter(Phase.DISCOVERY):
            if self.options.urls:
                self.discovered = _explicit_urls(self.options.urls, self.max_pages)
            return
        coordinator = DiscoveryCoordinator(
            self.client, self.config, bus=self.bus, max_pages=self.max_pages, should_stop=self.should_stop
        )
        result = await coordinator.discover(self.base_url)
        self.discovered = result.urls
        self.homepage_html = result.homepage_html
        await self.bus.notify(
            f"Discovered {len(self.discovered)} pages",
            NotificationType.SUCCESS if self.discovered else NotificationType.WARNING,
            phase=Phase.DISCOVERY,
        )
        await self._checkpoint("discovered_urls", [d.to_dict() for d in self.discovered])
        await self._leave(Phase.DISCOVERY, count=len(self.discovered))

    async def _rapid_scrape(self) -> None:
        if not await self._enter(Phase.RAPID_SCRAPE):
            return
        self.strategy = self._primary_strategy()
        urls = [d.url for d in self.discovered]
        if self.options.mode is RunMode.INCREMENTAL:
            urls = await self._drop_already_fetched(urls)

        policy = FailurePolicy(Phase.RAPID_SCRAPE.value, max_failures=self.config.max_failures)
        executor = BatchExecutor(
            self.strategy,
            phase=Phase.RAPID_SCRAPE,
            batch_size=self.config.batch_size,
            timeout=self.timeout,
            batch_delay=self.config.batch_delay,
            policy=policy,
            bus=self.bus,
            sleep=self.sleep,
            should_stop=self.should_stop,
        )
        outcome = await executor.run(urls, site=self.site, context={"correlationId": self.bus.correlation_id})
        self.pages = outcome.pages()
        self.summary.total_attempted = outcome.attempted
        self.summary.succeeded = outcome.succeeded
        self.summary.failed = outcome.failed
        if outcome.failed:
            await self.bus.notify(
                f"{outcome.failed} of {outcome.attempted} pages failed",
                NotificationType.WARNING,
                phase=Phase.RAPID_SCRAPE,
            )
        await self._leave(
            Phase.RAPID_SCRAPE,
            failed=outcome.exhausted,
            succeeded=outcome.succeeded,
            failed_count=outcome.failed,
            batches=outcome.batch_sizes,
        )

    async def _validation(self) -> None:
        if not await self._enter(Phase.VALIDATION):
            return
        validator = ContentValidator(
            min_content_length=self.config.min_content_length,
            acceptance_threshold=self.config.acceptance_threshold,
        )
        report = validator.validate(self.pages)
        self.validation = report.stats
        self.flagged = list(report.needs_enhancement)
        self.summary.validation_score = report.stats.average_score
        for flagged in self.flagged:
            logger.info("Flagged %s: %s", flagged.page.url, flagged.reason)
        await self._leave(
            Phase.VALIDATION,
            averageScore=report.stats.average_score,
            accepted=report.stats.valid_count,
            needsEnhancement=report.stats.enhancement_count,
        )

    async def _enhancement(self) -> None:
        reason = ""
        if self.tracker.status(Phase.VALIDATION) is not PhaseStatus.COMPLETE:
            reason = "no validation results"
        elif not self.flagged:
            reason = "nothing flagged"
        if self.tracker.should_skip(Phase.ENHANCEMENT):
            reason = ""
        if not await self._enter(Phase.ENHANCEMENT, reason=reason):
            return
        heavier = self.registry.heavier(self.strategy.kind if self.strategy else StrategyKind.STATIC)
        escalator = EnhancementEscalator(
            heavier,
            batch_size=self.config.enhancement_batch_size,
            timeout=self.timeout,
            batch_delay=self.config.batch_delay,
            max_failures=self.config.max_failures,
            bus=self.bus,
            sleep=self.sleep,
            should_stop=self.should_stop,
        )
        outcome = await escalator.enhance(self.pages, self.flagged, site=self.site)
        self.pages = outcome.pages
        self.enhanced = outcome.enhancement_count > 0
        self.summary.enhancement_count = outcome.enhancement_count
        await self._leave(
            Phase.ENHANCEMENT,
            failed=outcome.exhausted,
            enhanced=outcome.enhancement_count,
            keptOriginal=len(outcome.failures),
        )

    async def _complete(self) -> None:
        self.tracker.skip_remaining()
        self.tracker.start(Phase.COMPLETE)
        self.current = Phase.COMPLETE
        self._aggregate()
        await self._checkpoint("dataset", self._dataset_checkpoint())
        self.summary.phases_run = self.tracker.phases_run()
        self.summary.duration_ms = self._elapsed_ms()
        self.dataset.metadata.duration_ms = self.summary.duration_ms
        await self.bus.complete(
            {
                **self.summary.to_dict(),
                "pageCount": len(self.dataset.pages),
                "phases": self.tracker.snapshot(),
            }
        )
        self.tracker.complete(Phase.COMPLETE)
        self.current = None

    async def _fatal(self, exc: Exception) -> None:
        """Unexpected failure outside the per-URL loops: one error event, partial result."""
        phase = self.current or Phase.COMPLETE
        logger.error("Run %s failed during %s: %s", self.bus.correlation_id, phase.value, exc)
        if self.tracker.status(phase) in (PhaseStatus.PENDING, PhaseStatus.IN_PROGRESS):
            self.tracker.fail(phase)
        self.tracker.skip_remaining()
        if self.tracker.status(Phase.COMPLETE) in (PhaseStatus.PENDING, PhaseStatus.IN_PROGRESS):
            self.tracker.fail(Phase.COMPLETE)
        self.summary.fatal_error = f"{type(exc).__name__}: {exc}"
        self.summary.phases_run = self.tracker.phases_run()
        if self.dataset is None:
            self._aggregate()
        await self.bus.error(
            phase,
            str(exc),
            errorType=type(exc).__name__,
            phasesRun=self.summary.phases_run,
            pageCount=len(self.dataset.pages) if self.dataset else 0,
        )

    # ------------------------------------------------------------------ #
    # helpers
    # ------------------------------------------------------------------ #

    def _primary_strategy(self) -> FetchStrategy:
        if self.analyzer is not None and self.homepage_html:
            self.site = self.analyzer(self.homepage_html)
            logger.info("Site technology: %s (%s)", self.site.technology or "unknown", self.site.site_type or "?")
        if self.options.mode is RunMode.DYNAMIC:
            kind = StrategyKind.DYNAMIC
        else:
            kind = select_strategy(self.site)
        strategy = self.registry.get(kind)
        logger.info("Primary strategy: %s (selected %s)", strategy.name, kind.value)
        return strategy

    async def _drop_already_fetched(self, urls: List[str]) -> List[str]:
        if self.store is None or not self.options.session_id:
            logger.warning("Incremental mode needs a store and a session id; fetching everything")
            return urls
        previous = (await self.store.get(self.options.session_id)).get("dataset") or {}
        self.previous_pages = [PageRecord.from_dict(p) for p in previous.get("pages", [])]
        fetched = {normalize_url(p.url) for p in self.previous_pages}
        remaining = [u for u in urls if normalize_url(u) not in fetched]
        logger.info("Incremental: %d pages reused, %d to fetch", len(self.previous_pages), len(remaining))
        return remaining

    def _aggregate(self) -> None:
        seen = {normalize_url(p.url) for p in self.pages}
        pages = [p for p in self.previous_pages if normalize_url(p.url) not in seen] + self.pages
        self.dataset = aggregate_pages(
            pages,
            self.base_url,
            self.config,
            scraper_used=self.strategy.name if self.strategy else "",
            mode=self.options.mode.value,
            validation=self.validation,
            enhancement_applied=self.enhanced,
        )
        self.dataset.metadata.phase_durations_ms = dict(self.phase_durations)
        self.dataset.metadata.duration_ms = self._elapsed_ms()

    def _dataset_checkpoint(self) -> Dict:
        data = self.dataset.to_dict()
        data["pages"] = [p.to_dict(include_content=True) for p in self.dataset.pages]
        return data

    async def _checkpoint(self, key: str, value) -> None:
        if self.store is None or not self.options.session_id:
            return
        try:
            await self.store.upsert(self.options.session_id, key, value)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"checkpoint '{key}' failed: {exc}") from exc


def _explicit_urls(urls: Sequence[str], max_pages: int) -> List[DiscoveredURL]:
    unique = remove_duplicates([normalize_url(u) for u in urls])
    return [DiscoveredURL(url=u, source=DiscoverySource.CRAWL) for u in unique[:max_pages]]
