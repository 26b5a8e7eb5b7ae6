# File: tests/test_enhancement.py
import pytest

from conftest import FakeStrategy, make_page, no_sleep
from site_intel.enhancement import EnhancementEscalator
from site_intel.models import FlaggedPage
from site_intel.strategies import StrategyKind

URLS = [f"https://example.com/p{i}" for i in range(5)]


def weak_pages():
    return [make_page(url, text="Short.") for url in URLS]


def flag(page, reason="content too short"):
    return FlaggedPage(page, reason)


@pytest.mark.asyncio()
async def test_success_replaces_in_place_and_failure_keeps_original():
    pages = weak_pages()
    heavy = FakeStrategy(StrategyKind.DYNAMIC, failing={URLS[3]})
    escalator = EnhancementEscalator(heavy, batch_size=2, sleep=no_sleep)

    outcome = await escalator.enhance(pages, [flag(pages[1]), flag(pages[3])])

    assert [p.url for p in outcome.pages] == URLS
    assert outcome.pages[1].strategy == "dynamic"
    assert outcome.pages[3] is pages[3]
    assert outcome.pages[0] is pages[0]
    assert outcome.enhanced == [URLS[1]]
    assert outcome.enhancement_count == 1
    assert [f.url for f in outcome.failures] == [URLS[3]]
    assert "connection refused" in outcome.failures[0].reason
    assert heavy.calls == [URLS[1], URLS[3]]


@pytest.mark.asyncio()
async def test_empty_refetch_keeps_original():
    pages = weak_pages()
    heavy = FakeStrategy(StrategyKind.DYNAMIC, empty={URLS[0]})
    outcome = await EnhancementEscalator(heavy, sleep=no_sleep).enhance(pages, [flag(pages[0])])

    assert outcome.pages[0] is pages[0]
    assert outcome.failures[0].reason == "empty content"


@pytest.mark.asyncio()
async def test_flagged_pages_matched_by_normalized_url():
    pages = weak_pages()
    alias = make_page("https://EXAMPLE.com/p2/", text="Short.")
    heavy = FakeStrategy(StrategyKind.DYNAMIC)
    outcome = await EnhancementEscalator(heavy, sleep=no_sleep).enhance(pages, [flag(alias)])

    assert outcome.pages[2].strategy == "dynamic"
    assert outcome.enhancement_count == 1


@pytest.mark.asyncio()
async def test_unknown_flagged_page_is_ignored():
    pages = weak_pages()
    stranger = make_page("https://example.com/elsewhere")
    heavy = FakeStrategy(StrategyKind.DYNAMIC)
    outcome = await EnhancementEscalator(heavy, sleep=no_sleep).enhance(pages, [flag(stranger)])

    assert outcome.pages == pages
    assert heavy.calls == []


@pytest.mark.asyncio()
async def test_nothing_flagged():
    pages = weak_pages()
    heavy = FakeStrategy(StrategyKind.DYNAMIC)
    outcome = await EnhancementEscalator(heavy).enhance(pages, [])

    assert outcome.pages == pages
    assert outcome.attempted == 0
    assert heavy.calls == []


@pytest.mark.asyncio()
async def test_failure_budget_keeps_remaining_originals():
    pages = weak_pages()
    heavy = FakeStrategy(StrategyKind.DYNAMIC, failing=set(URLS[:2]))
    escalator = EnhancementEscalator(heavy, batch_size=2, max_failures=1, sleep=no_sleep)

    outcome = await escalator.enhance(pages, [flag(p) for p in pages])

    assert outcome.exhausted
    assert outcome.pages == pages
    assert len(outcome.failures) == 5
    assert heavy.calls == URLS[:2]
