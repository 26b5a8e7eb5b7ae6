# File: tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Iterable, Mapping, Optional

import pytest
from aiohttp import web

from site_intel.config import PipelineConfig
from site_intel.errors import NetworkError
from site_intel.models import (
    BrandAssets,
    ContactInfo,
    ExtractedEntities,
    PageRecord,
    RawPayload,
    StructuredPayload,
)
from site_intel.strategies.base import FetchStrategy, SiteMetadata, StrategyKind

LONG_TEXT = " ".join(
    f"Sentence number {i} describes what the company does for its customers every day." for i in range(12)
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStrategy(FetchStrategy):
    """Serves canned records; URLs in *failing* raise, URLs in *empty* return no content."""

    def __init__(
        self,
        kind: StrategyKind = StrategyKind.STATIC,
        *,
        pages: Optional[Mapping[str, PageRecord]] = None,
        failing: Iterable[str] = (),
        empty: Iterable[str] = (),
        stateful: bool = False,
    ) -> None:
        self.kind = kind
        self.stateful = stateful
        self.pages = dict(pages or {})
        self.failing = set(failing)
        self.empty = set(empty)
        self.calls: list[str] = []

    async def fetch(self, url: str, context: Optional[Mapping[str, Any]] = None, site: Optional[SiteMetadata] = None) -> PageRecord:
        self.calls.append(url)
        if url in self.failing:
            raise NetworkError(url, "connection refused")
        if url in self.empty:
            return PageRecord(url=url, strategy=self.name)
        if url in self.pages:
            return self.pages[url]
        return make_page(url, strategy=self.name)


def make_page(
    url: str,
    *,
    title: str = "Page",
    text: str = LONG_TEXT,
    strategy: str = "static",
    entities: Optional[ExtractedEntities] = None,
    raw: bool = False,
    content: Optional[str] = None,
) -> PageRecord:
    if entities is None:
        entities = ExtractedEntities(
            brand_assets=BrandAssets(logo=f"{url}/logo.png", colors=("#112233",)),
            contact_info=ContactInfo(emails=("hello@example.com",)),
            images=(f"{url}/hero.jpg",),
        )
    return PageRecord(
        url=url,
        title=title,
        content=content if content is not None else f"<html><body><p>{text}</p></body></html>",
        text=text,
        strategy=strategy,
        payload=RawPayload() if raw else StructuredPayload(entities),
    )


async def serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


async def no_sleep(_: float) -> None:
    return None


@pytest.fixture()
def fast_config() -> PipelineConfig:
    """Config without delays, suitable for local test servers."""
    return PipelineConfig(timeout=5.0, batch_delay=0.0, retry_times=0, user_agent="TestAgent/1.0")


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()

