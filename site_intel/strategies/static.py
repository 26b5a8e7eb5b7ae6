# site_intel/strategies/static.py
"""
Lightweight fetch+parse strategy: one GET, BeautifulSoup, no JavaScript.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional

from bs4 import BeautifulSoup

from site_intel.errors import ParseError
from site_intel.http import HttpClient
from site_intel.models import PageRecord, RawPayload, StructuredPayload
from site_intel.strategies.base import FetchStrategy, SiteMetadata, StrategyKind
from site_intel.strategies.extraction import extract_entities, page_title, visible_text


class StaticStrategy(FetchStrategy):
    """Fetches server-rendered HTML and extracts entities from it."""

    kind = StrategyKind.STATIC
    stateful = False

    def __init__(self, client: HttpClient) -> None:
        self.client = client

    async def fetch(
        self,
        url: str,
        context: Optional[Mapping[str, Any]] = None,
        site: Optional[SiteMetadata] = None,
    ) -> PageRecord:
        html = await self.client.get_text(url)
        if not html.strip():
            return PageRecord(url=url, strategy=self.name)
        try:
            soup = BeautifulSoup(html, "html.parser")
        except Exception as exc:
            raise ParseError(url, f"unparseable HTML: {exc}") from exc

        text = visible_text(soup)
        if soup.find(True) is None:
            # plain text body: keep it, nothing structured to extract
            return PageRecord(url=url, content=html, text=text, strategy=self.name, payload=RawPayload())
        return PageRecord(
            url=url,
            title=page_title(soup),
            content=html,
            text=text,
            strategy=self.name,
            payload=StructuredPayload(extract_entities(soup, url, text)),
        )


__all__ = ["StaticStrategy"]
