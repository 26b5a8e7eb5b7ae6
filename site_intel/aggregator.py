# File: site_intel/aggregator.py
"""site_intel.aggregator: Объединение сущностей со всех страниц в один AggregatedDataset."""

from __future__ import annotations

import re
from typing import Callable, Hashable, Iterable, List, Optional, Sequence, TypeVar

from site_intel.config import PipelineConfig
from site_intel.logger import logger
from site_intel.models import (
    AggregatedDataset,
    BrandAssets,
    ContactInfo,
    DatasetMetadata,
    PageRecord,
    ValidationStats,
)
from site_intel.utils import normalize_url, resolve_url

T = TypeVar("T")

BRAND_GUIDE_RE = re.compile(r"(brand|style|design)[\s_-]*(guide|guidelines|manual|standards)", re.I)
PDF_HREF_RE = re.compile(r"""href\s*=\s*["']([^"']+?\.pdf)(?:[?#][^"']*)?["']""", re.I)

#: how far (in characters) the phrase may sit from the PDF link
GUIDE_WINDOW = 300


def _dedup_by(items: Iterable[T], key: Callable[[T], Hashable], limit: Optional[int] = None) -> List[T]:
    """Первое вхождение побеждает; результат обрезается до limit (None - без ограничения)."""
    seen: set = set()
    out: List[T] = []
    for item in items:
        if limit is not None and len(out) >= limit:
            break
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
    return out


def _values(items: Iterable[str], limit: int) -> List[str]:
    return _dedup_by((i for i in items if i), lambda v: v, limit)


def _homepage_first(pages: Sequence[PageRecord], site_url: str) -> List[PageRecord]:
    home = normalize_url(site_url)
    first = [p for p in pages if normalize_url(p.url) == home]
    return first + [p for p in pages if normalize_url(p.url) != home]


def find_brand_guidelines(pages: Sequence[PageRecord]) -> Optional[str]:
    """Ищет фразу «brand/style/design guide…» рядом со ссылкой на PDF.

    Относительный адрес PDF разрешается от origin той страницы, где он найден;
    возвращается первое совпадение в порядке страниц.
    """
    for page in pages:
        content = page.content
        if not content or not BRAND_GUIDE_RE.search(content):
            continue
        for match in PDF_HREF_RE.finditer(content):
            window = content[max(0, match.start() - GUIDE_WINDOW): match.end() + GUIDE_WINDOW]
            if BRAND_GUIDE_RE.search(window):
                return resolve_url(match.group(1).strip(), page.url)
    return None


def _aggregate_brand(pages: Sequence[PageRecord], site_url: str, config: PipelineConfig) -> BrandAssets:
    """Брендинг главной страницы идёт первым: её цвета и шрифты вытесняют остальные при обрезке."""
    ordered = [p.entities.brand_assets for p in _homepage_first(pages, site_url)]
    return BrandAssets(
        logo=next((b.logo for b in ordered if b.logo), None),
        favicon=next((b.favicon for b in ordered if b.favicon), None),
        colors=tuple(_values((c for b in ordered for c in b.colors), config.max_colors)),
        fonts=tuple(_values((f for b in ordered for f in b.fonts), config.max_fonts)),
        gradients=tuple(_values((g for b in ordered for g in b.gradients), config.max_gradients)),
        guidelines_url=find_brand_guidelines(pages),
    )


def _aggregate_contact(pages: Sequence[PageRecord], config: PipelineConfig) -> ContactInfo:
    infos = [p.entities.contact_info for p in pages]
    return ContactInfo(
        emails=tuple(_values((e for i in infos for e in i.emails), config.max_emails)),
        phones=tuple(_values((ph for i in infos for ph in i.phones), config.max_phones)),
        addresses=tuple(_values((a for i in infos for a in i.addresses), config.max_addresses)),
        contact_page_url=next((i.contact_page_url for i in infos if i.contact_page_url), None),
    )


def aggregate_pages(
    pages: Sequence[PageRecord],
    site_url: str,
    config: Optional[PipelineConfig] = None,
    *,
    scraper_used: str = "",
    mode: str = "",
    validation: Optional[ValidationStats] = None,
    enhancement_applied: bool = False,
) -> AggregatedDataset:
    """Собирает все сущности страниц в AggregatedDataset.

    Дедупликация по естественному ключу, первое вхождение побеждает:
    соцсети по платформе, люди/продукты/отзывы по имени, контакты и
    изображения по точному значению.
    """
    config = config or PipelineConfig()
    entities = [p.entities for p in pages]

    dataset = AggregatedDataset(url=site_url, pages=list(pages))
    dataset.brand_assets = _aggregate_brand(pages, site_url, config)
    dataset.contact_info = _aggregate_contact(pages, config)
    dataset.social_links = _dedup_by(
        (s for e in entities for s in e.social_links), lambda s: s.platform
    )
    dataset.team_members = _dedup_by(
        (t for e in entities for t in e.team_members), lambda t: t.name, config.max_team_members
    )
    dataset.products = _dedup_by(
        (p for e in entities for p in e.products), lambda p: p.name, config.max_products
    )
    dataset.testimonials = _dedup_by(
        (t for e in entities for t in e.testimonials), lambda t: t.name, config.max_testimonials
    )
    dataset.images = _values((i for e in entities for i in e.images), config.max_images)
    dataset.metadata = DatasetMetadata(
        total_pages=len(pages),
        scraper_used="hybrid-enhanced" if enhancement_applied else scraper_used,
        mode=mode,
        validation=validation,
        enhancement_applied=enhancement_applied,
    )
    logger.info(
        "Aggregated %d pages: %d social, %d team, %d products, %d testimonials, %d images",
        len(pages),
        len(dataset.social_links),
        len(dataset.team_members),
        len(dataset.products),
        len(dataset.testimonials),
        len(dataset.images),
    )
    return dataset


__all__ = ["aggregate_pages", "find_brand_guidelines", "BRAND_GUIDE_RE"]
