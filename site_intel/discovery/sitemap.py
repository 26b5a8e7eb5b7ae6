# File: site_intel/discovery/sitemap.py
"""site_intel.discovery.sitemap: Разбор sitemap.xml и sitemap index, рекурсивный обход индексов."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Set
from urllib.parse import urljoin

from lxml import etree

from site_intel.errors import NetworkError, ParseError
from site_intel.http import HttpClient
from site_intel.logger import logger

DEFAULT_SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")


@dataclass(frozen=True, slots=True)
class SitemapEntry:
    """Одна запись <url> из sitemap."""

    loc: str
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None
    priority: Optional[float] = None


@dataclass(slots=True)
class SitemapDocument:
    """Результат разбора: страницы (<urlset>) и вложенные sitemap (<sitemapindex>)."""

    entries: List[SitemapEntry] = field(default_factory=list)
    sitemaps: List[str] = field(default_factory=list)


def _child_text(node: etree._Element, name: str) -> Optional[str]:
    child = node.find(f"{{*}}{name}")
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def _parse_priority(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return min(1.0, max(0.0, value))


def parse_sitemap(xml_content: str, url: str = "<sitemap>") -> SitemapDocument:
    """Разбирает XML content sitemap и возвращает записи страниц и ссылки на вложенные sitemap.

    Args:
        xml_content: строка с содержимым sitemap.xml.
        url: адрес документа (только для сообщений об ошибках).

    Raises:
        ParseError: если документ не является XML.

    Пример:
    ```python
    doc = parse_sitemap(text)
    print([e.loc for e in doc.entries])
    ```
    """
    parser = etree.XMLParser(ns_clean=True, recover=True, resolve_entities=False)
    try:
        root = etree.fromstring(xml_content.strip().encode("utf-8"), parser=parser)
    except etree.XMLSyntaxError as exc:
        raise ParseError(url, f"invalid sitemap XML: {exc}") from exc
    if root is None:
        raise ParseError(url, "empty or non-XML sitemap")

    doc = SitemapDocument()
    tag = etree.QName(root).localname.lower()
    if tag == "sitemapindex":
        for node in root.findall("{*}sitemap"):
            loc = _child_text(node, "loc")
            if loc:
                doc.sitemaps.append(loc)
    elif tag == "urlset":
        for node in root.findall("{*}url"):
            loc = _child_text(node, "loc")
            if not loc:
                continue
            doc.entries.append(
                SitemapEntry(
                    loc=loc,
                    lastmod=_child_text(node, "lastmod"),
                    changefreq=_child_text(node, "changefreq"),
                    priority=_parse_priority(_child_text(node, "priority")),
                )
            )
    else:
        raise ParseError(url, f"unexpected sitemap root <{tag}>")
    return doc


async def collect_sitemap_entries(
    client: HttpClient,
    base_url: str,
    *,
    declared: Iterable[str] = (),
    max_depth: int = 3,
    max_entries: Optional[int] = None,
    should_stop: Optional[Callable[[], bool]] = None,
) -> List[SitemapEntry]:
    """Пробует стандартные пути и объявленные в robots.txt sitemap, рекурсивно раскрывая индексы.

    Ошибка одного документа логируется и не мешает остальным.  Сбор
    прекращается после *max_entries* записей или когда *should_stop* вернёт True.
    """
    queue = [(urljoin(base_url, path), 1) for path in DEFAULT_SITEMAP_PATHS]
    queue += [(urljoin(base_url, s), 1) for s in declared]
    visited: Set[str] = set()
    entries: List[SitemapEntry] = []

    while queue:
        if max_entries is not None and len(entries) >= max_entries:
            logger.info("Sitemap entry cap of %d reached", max_entries)
            break
        if should_stop is not None and should_stop():
            break
        sitemap_url, depth = queue.pop(0)
        if sitemap_url in visited:
            continue
        visited.add(sitemap_url)
        try:
            text = await client.get_text(sitemap_url)
            doc = parse_sitemap(text, sitemap_url)
        except (NetworkError, ParseError) as exc:
            logger.info("Sitemap %s skipped: %s", sitemap_url, exc)
            continue
        entries.extend(doc.entries)
        if doc.sitemaps and depth >= max_depth:
            logger.warning("Sitemap index depth %d reached at %s", max_depth, sitemap_url)
            continue
        queue.extend((child, depth + 1) for child in doc.sitemaps)

    if max_entries is not None:
        entries = entries[:max_entries]
    logger.info("Sitemaps: %d documents checked, %d entries", len(visited), len(entries))
    return entries


__all__ = ["SitemapEntry", "SitemapDocument", "parse_sitemap", "collect_sitemap_entries"]
