# site_intel/discovery/coordinator.py
"""
Discovery coordinator.

Runs independent discovery steps and unions their results into one ordered,
duplicate-free list of :class:`~site_intel.models.DiscoveredURL`:

1. sitemap chain (standard paths plus robots-declared sitemaps, indexes resolved);
2. homepage crawl by section (footer, nav, header, body);
3. pattern probing of conventional paths (off by default);
4. blog/content sections (sub-links of a few blog-like roots);
5. robots filter and priority sort;
6. reachability check in priority order, in chunks of
   ``validation_concurrency``, until the page cap is filled.

Sitemap entries are capped at the page cap as well, so a huge sitemap costs
at most a handful of probes.  A failing step logs and contributes nothing; no
step aborts the coordinator.  When *should_stop* fires, the remaining steps
are skipped and the candidates merged so far are returned unprobed.
Steps return their own lists and only the coordinator writes the merged set.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar
from urllib.parse import urlparse

from site_intel.config import PipelineConfig
from site_intel.discovery.links import extract_section_links, heuristic_priority
from site_intel.discovery.patterns import PatternProber
from site_intel.discovery.robots import ALLOW_ALL, RobotsTxtRules, fetch_robots
from site_intel.discovery.sitemap import collect_sitemap_entries
from site_intel.events import EventBus, Phase
from site_intel.http import HttpClient
from site_intel.logger import logger
from site_intel.models import DiscoveredURL, DiscoverySource
from site_intel.utils import base_url_for, chunked, normalize_url, same_site

T = TypeVar("T")

BLOG_ROOTS = ("/blog", "/news", "/articles", "/posts", "/insights", "/resources")

STEPS = ("robots", "sitemap", "homepage", "patterns", "blog", "validation")


@dataclass(slots=True)
class DiscoveryResult:
    base_url: str
    urls: List[DiscoveredURL] = field(default_factory=list)
    homepage_html: str = ""
    robots: RobotsTxtRules = ALLOW_ALL
    counts: Dict[str, int] = field(default_factory=dict)
    dropped: int = 0
    stopped: bool = False
    duration_ms: int = 0


class DiscoveryCoordinator:
    """Finds and normalizes candidate URLs for one domain."""

    def __init__(
        self,
        client: HttpClient,
        config: PipelineConfig,
        *,
        bus: Optional[EventBus] = None,
        max_pages: Optional[int] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> None:
        self.client = client
        self.config = config
        self.bus = bus
        self.max_pages = max_pages or config.max_pages
        self.should_stop = should_stop

    async def discover(self, domain: str) -> DiscoveryResult:
        started = time.monotonic()
        base_url = base_url_for(domain)
        result = DiscoveryResult(base_url=base_url)
        result.counts = dict.fromkeys(("sitemap", "homepage", "patterns", "blog"), 0)
        logger.info("Discovery started for %s", base_url)
        merged: List[DiscoveredURL] = []

        result.robots = await self._step("robots", fetch_robots(self.client, base_url), ALLOW_ALL)

        if not self._stopped(result, "sitemap"):
            sitemap_urls, (homepage_html, homepage_urls) = await asyncio.gather(
                self._step("sitemap", self._from_sitemaps(base_url, result.robots), []),
                self._step("homepage", self._from_homepage(base_url), ("", [])),
            )
            result.homepage_html = homepage_html
            result.counts.update(sitemap=len(sitemap_urls), homepage=len(homepage_urls))
            merged = merge_candidates(homepage_urls, sitemap_urls)

        if not self._stopped(result, "patterns"):
            if self.config.pattern_discovery:
                prober = PatternProber(self.client, base_url, concurrency=self.config.validation_concurrency)
                pattern_urls = await self._step("patterns", prober.run(), [])
                result.counts["patterns"] = len(pattern_urls)
                merged = merge_candidates(merged, pattern_urls)
            else:
                await self._progress("patterns", skipped=True)

        if not self._stopped(result, "blog"):
            blog_urls = await self._step("blog", self._from_blogs(base_url, merged), [])
            result.counts["blog"] = len(blog_urls)
            merged = merge_candidates(merged, blog_urls)

        allowed = self._apply_robots(merged, result.robots)
        result.dropped = len(merged) - len(allowed)
        ranked = rank_and_cap(allowed, len(allowed))
        if not self.config.validate_urls:
            await self._progress("validation", skipped=True)
            result.urls = ranked[: self.max_pages]
        elif self._stopped(result, "validation"):
            result.urls = ranked[: self.max_pages]
        else:
            result.urls = await self._step(
                "validation", self._validate(ranked, result), ranked[: self.max_pages]
            )

        result.duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "Discovery finished: %d URLs (%s, %d dropped) in %d ms%s",
            len(result.urls),
            ", ".join(f"{k}={v}" for k, v in result.counts.items()),
            result.dropped,
            result.duration_ms,
            " (stopped early)" if result.stopped else "",
        )
        return result

    def _stopped(self, result: DiscoveryResult, next_step: str) -> bool:
        if result.stopped:
            return True
        if self.should_stop is not None and self.should_stop():
            logger.info("Discovery stopped before step '%s'", next_step)
            result.stopped = True
        return result.stopped

    # ------------------------------------------------------------------ #
    # steps
    # ------------------------------------------------------------------ #

    async def _step(self, name: str, work: Awaitable[T], fallback: T) -> T:
        try:
            value = await work
        except Exception as exc:
            logger.warning("Discovery step '%s' failed: %s", name, exc)
            value = fallback
        await self._progress(name)
        return value

    async def _progress(self, name: str, *, skipped: bool = False) -> None:
        if self.bus is None:
            return
        await self.bus.progress(
            Phase.DISCOVERY,
            STEPS.index(name) + 1,
            len(STEPS),
            source=f"discovery:{name}",
            step=name,
            skipped=skipped,
        )

    async def _from_sitemaps(self, base_url: str, robots: RobotsTxtRules) -> List[DiscoveredURL]:
        entries = await collect_sitemap_entries(
            self.client,
            base_url,
            declared=robots.sitemaps,
            max_depth=self.config.sitemap_depth,
            max_entries=self.max_pages,
            should_stop=self.should_stop,
        )
        found = []
        for entry in entries:
            if not same_site(entry.loc, base_url):
                continue
            url = normalize_url(entry.loc)
            found.append(
                DiscoveredURL(
                    url=url,
                    priority=entry.priority if entry.priority is not None else heuristic_priority(url, base_url),
                    source=DiscoverySource.SITEMAP,
                    lastmod=entry.lastmod,
                    changefreq=entry.changefreq,
                )
            )
        return found

    async def _from_homepage(self, base_url: str) -> tuple[str, List[DiscoveredURL]]:
        html = await self.client.get_text(base_url)
        homepage = DiscoveredURL(
            url=normalize_url(base_url),
            title="Home",
            priority=1.0,
            source=DiscoverySource.HOMEPAGE,
        )
        found = [homepage]
        for link in extract_section_links(html, base_url, base_url):
            found.append(
                DiscoveredURL(
                    url=link.url,
                    title=link.title,
                    priority=heuristic_priority(link.url, base_url),
                    source=DiscoverySource.HOMEPAGE,
                )
            )
        logger.debug("Homepage crawl: %d links", len(found) - 1)
        return html, found

    async def _from_blogs(self, base_url: str, candidates: Sequence[DiscoveredURL]) -> List[DiscoveredURL]:
        roots = [c.url for c in candidates if urlparse(c.url).path.lower() in BLOG_ROOTS]
        roots = roots[: self.config.blog_section_limit]
        found: List[DiscoveredURL] = []
        for root in roots:
            if self.should_stop is not None and self.should_stop():
                break
            try:
                html = await self.client.get_text(root)
            except Exception as exc:
                logger.warning("Blog section %s skipped: %s", root, exc)
                continue
            for link in extract_section_links(html, root, base_url):
                found.append(
                    DiscoveredURL(
                        url=link.url,
                        title=link.title,
                        priority=heuristic_priority(link.url, base_url),
                        source=DiscoverySource.BLOG,
                    )
                )
        return found

    def _apply_robots(self, candidates: List[DiscoveredURL], robots: RobotsTxtRules) -> List[DiscoveredURL]:
        if not self.config.respect_robots:
            return candidates
        allowed = [c for c in candidates if robots.can_fetch_url(self.config.user_agent, c.url)]
        if len(allowed) != len(candidates):
            logger.info("robots.txt disallows %d candidates", len(candidates) - len(allowed))
        return allowed

    async def _validate(self, ranked: List[DiscoveredURL], result: DiscoveryResult) -> List[DiscoveredURL]:
        """Probe candidates in priority order until ``max_pages`` of them answer."""
        reachable: List[DiscoveredURL] = []
        checked = 0
        for chunk in chunked(ranked, self.config.validation_concurrency):
            if len(reachable) >= self.max_pages:
                break
            if self.should_stop is not None and self.should_stop():
                logger.info("Validation stopped after %d of %d candidates", checked, len(ranked))
                result.stopped = True
                break
            verdicts = await asyncio.gather(*(self.client.probe(c.url) for c in chunk))
            checked += len(chunk)
            for candidate, ok in zip(chunk, verdicts):
                if ok:
                    reachable.append(candidate)
                else:
                    result.dropped += 1
                    logger.info("Unreachable candidate dropped: %s", candidate.url)
        return reachable[: self.max_pages]


def merge_candidates(*groups: Sequence[DiscoveredURL]) -> List[DiscoveredURL]:
    """Union in argument order; the first entry for a normalized URL wins."""
    merged: Dict[str, DiscoveredURL] = {}
    for group in groups:
        for candidate in group:
            key = normalize_url(candidate.url)
            if key not in merged:
                merged[key] = candidate
    return list(merged.values())


def rank_and_cap(candidates: Sequence[DiscoveredURL], max_pages: int) -> List[DiscoveredURL]:
    """Stable sort by priority (descending), then cap."""
    ranked = sorted(candidates, key=lambda c: -c.priority)
    return ranked[:max_pages]


__all__ = ["DiscoveryCoordinator", "DiscoveryResult", "merge_candidates", "rank_and_cap", "BLOG_ROOTS"]
