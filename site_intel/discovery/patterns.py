"""Модуль для перебора типовых путей сайта (about, contact, team, ...)."""

import asyncio
from typing import List, Optional, Sequence
from urllib.parse import urljoin

from site_intel.discovery.links import heuristic_priority
from site_intel.http import HttpClient
from site_intel.logger import logger
from site_intel.models import DiscoveredURL, DiscoverySource
from site_intel.utils import normalize_url

COMMON_PATHS: Sequence[str] = (
    "about",
    "about-us",
    "company",
    "team",
    "our-team",
    "leadership",
    "contact",
    "contact-us",
    "services",
    "products",
    "solutions",
    "pricing",
    "careers",
    "customers",
    "case-studies",
    "testimonials",
    "partners",
    "press",
    "blog",
    "news",
)


class PatternProber:
    """Проверяет типовые пути и возвращает те, что отвечают статусом < 400."""

    def __init__(self, client: HttpClient, base_url: str, paths: Sequence[str] = COMMON_PATHS, concurrency: int = 10) -> None:
        """Инициализирует перебор с клиентом, базовым URL, списком путей и уровнем конкуренции."""
        self.client = client
        self.base_url = base_url
        self.paths = list(paths)
        self.semaphore = asyncio.Semaphore(concurrency)

    async def probe(self, path: str) -> Optional[DiscoveredURL]:
        """Проверяет один путь и возвращает DiscoveredURL при успешном ответе."""
        url = normalize_url(urljoin(self.base_url, path))
        async with self.semaphore:
            if not await self.client.probe(url):
                return None
        return DiscoveredURL(
            url=url,
            title=path.replace("-", " ").title(),
            priority=heuristic_priority(url, self.base_url),
            source=DiscoverySource.PATTERN,
        )

    async def run(self) -> List[DiscoveredURL]:
        """Запускает перебор всех путей и собирает найденные страницы."""
        tasks = [asyncio.create_task(self.probe(path)) for path in self.paths]
        results = await asyncio.gather(*tasks)
        found = [r for r in results if r is not None]
        logger.info("Pattern discovery: %d of %d paths answered", len(found), len(self.paths))
        return found


__all__ = ["PatternProber", "COMMON_PATHS"]
