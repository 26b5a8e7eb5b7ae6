# site_intel/models.py
"""
Data models for the SiteIntel pipeline.

Page records and entities are frozen dataclasses with tuple collections: a
better record *replaces* a worse one, nothing is edited in place.  What a
fetch strategy managed to extract is a tagged union: ``StructuredPayload``
when entity fields were parsed, ``RawPayload`` when only raw markup came back.
"""
from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class DiscoverySource(str, Enum):
    SITEMAP = "sitemap"
    HOMEPAGE = "homepage"
    PATTERN = "pattern"
    BLOG = "blog"
    CRAWL = "crawl"


@dataclass(frozen=True, slots=True)
class DiscoveredURL:
    """A normalized candidate URL found during discovery."""

    url: str
    title: str = ""
    priority: float = 0.5
    source: DiscoverySource = DiscoverySource.CRAWL
    lastmod: Optional[str] = None
    changefreq: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.priority <= 1.0:
            object.__setattr__(self, "priority", min(1.0, max(0.0, self.priority)))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["source"] = self.source.value
        return data


# --------------------------------------------------------------------------- #
# Entities
# --------------------------------------------------------------------------- #


@dataclass(frozen=True, slots=True)
class BrandAssets:
    logo: Optional[str] = None
    favicon: Optional[str] = None
    colors: Tuple[str, ...] = ()
    fonts: Tuple[str, ...] = ()
    gradients: Tuple[str, ...] = ()
    guidelines_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ContactInfo:
    emails: Tuple[str, ...] = ()
    phones: Tuple[str, ...] = ()
    addresses: Tuple[str, ...] = ()
    contact_page_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SocialLink:
    platform: str
    url: str


@dataclass(frozen=True, slots=True)
class TeamMember:
    name: str
    role: Optional[str] = None
    image: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Product:
    name: str
    description: Optional[str] = None
    price: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Testimonial:
    # the author's name is the testimonial's natural key
    name: str
    quote: str = ""
    company: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ExtractedEntities:
    brand_assets: BrandAssets = field(default_factory=BrandAssets)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    social_links: Tuple[SocialLink, ...] = ()
    team_members: Tuple[TeamMember, ...] = ()
    products: Tuple[Product, ...] = ()
    testimonials: Tuple[Testimonial, ...] = ()
    images: Tuple[str, ...] = ()

    #: fields counted by the validator's "populated ratio"
    EXPECTED_FIELDS = (
        "logo",
        "colors",
        "emails",
        "phones",
        "social_links",
        "team_members",
        "products",
        "testimonials",
        "images",
    )

    def populated_fields(self) -> List[str]:
        values = {
            "logo": self.brand_assets.logo,
            "colors": self.brand_assets.colors,
            "emails": self.contact_info.emails,
            "phones": self.contact_info.phones,
            "social_links": self.social_links,
            "team_members": self.team_members,
            "products": self.products,
            "testimonials": self.testimonials,
            "images": self.images,
        }
        return [name for name in self.EXPECTED_FIELDS if values[name]]

    def has_contact(self) -> bool:
        info = self.contact_info
        return bool(info.emails or info.phones or info.addresses)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ExtractedEntities:
        brand = data.get("brand_assets") or {}
        contact = data.get("contact_info") or {}
        return cls(
            brand_assets=BrandAssets(
                **{k: tuple(v) if isinstance(v, list) else v for k, v in brand.items()}
            ),
            contact_info=ContactInfo(
                **{k: tuple(v) if isinstance(v, list) else v for k, v in contact.items()}
            ),
            social_links=tuple(SocialLink(**s) for s in data.get("social_links", ())),
            team_members=tuple(TeamMember(**t) for t in data.get("team_members", ())),
            products=tuple(Product(**p) for p in data.get("products", ())),
            testimonials=tuple(Testimonial(**t) for t in data.get("testimonials", ())),
            images=tuple(data.get("images", ())),
        )


@dataclass(frozen=True, slots=True)
class StructuredPayload:
    """The strategy parsed entity fields out of the page."""

    entities: ExtractedEntities
    kind: str = field(default="structured", init=False)


@dataclass(frozen=True, slots=True)
class RawPayload:
    """Only raw content is available; no entity fields were produced."""

    kind: str = field(default="raw", init=False)


Payload = Union[StructuredPayload, RawPayload]


@dataclass(frozen=True, slots=True)
class PageRecord:
    """One fetched page as produced by a strategy."""

    url: str
    title: str = ""
    content: str = ""
    text: str = ""
    strategy: str = ""
    payload: Payload = field(default_factory=RawPayload)
    errors: Tuple[str, ...] = ()
    fetched_at: float = field(default_factory=time.time)

    @property
    def entities(self) -> ExtractedEntities:
        if isinstance(self.payload, StructuredPayload):
            return self.payload.entities
        return ExtractedEntities()

    @property
    def is_empty(self) -> bool:
        return not (self.content.strip() or self.text.strip())

    def with_errors(self, *errors: str) -> PageRecord:
        return replace(self, errors=self.errors + tuple(errors))

    def to_dict(self, *, include_content: bool = False) -> Dict[str, Any]:
        data = {
            "url": self.url,
            "title": self.title,
            "strategy": self.strategy,
            "payload": self.payload.kind,
            "entities": asdict(self.entities),
            "errors": list(self.errors),
            "fetched_at": self.fetched_at,
            "text_length": len(self.text),
        }
        if include_content:
            data["content"] = self.content
            data["text"] = self.text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> PageRecord:
        """Rebuild a record from ``to_dict`` output (checkpoints)."""
        payload: Payload
        if data.get("payload") == "structured":
            payload = StructuredPayload(ExtractedEntities.from_dict(data.get("entities") or {}))
        else:
            payload = RawPayload()
        return cls(
            url=data["url"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            text=data.get("text", ""),
            strategy=data.get("strategy", ""),
            payload=payload,
            errors=tuple(data.get("errors", ())),
            fetched_at=data.get("fetched_at", 0.0),
        )


# --------------------------------------------------------------------------- #
# Validation
# --------------------------------------------------------------------------- #


class Severity(str, Enum):
    FATAL = "fatal"
    WARNING = "warning"


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    code: str
    severity: Severity
    description: str


@dataclass(frozen=True, slots=True)
class ValidationResult:
    page: PageRecord
    score: float
    issues: Tuple[ValidationIssue, ...] = ()
    needs_enhancement: bool = False

    @property
    def reasons(self) -> Tuple[str, ...]:
        return tuple(i.description for i in self.issues) if self.needs_enhancement else ()

    @property
    def reason(self) -> str:
        """Primary human-readable reason: first fatal issue, else first warning."""
        if not self.needs_enhancement:
            return ""
        for severity in (Severity.FATAL, Severity.WARNING):
            for issue in self.issues:
                if issue.severity is severity:
                    return issue.description
        return "low validation score"


@dataclass(frozen=True, slots=True)
class FlaggedPage:
    page: PageRecord
    reason: str


@dataclass(frozen=True, slots=True)
class ValidationStats:
    total_pages: int = 0
    valid_count: int = 0
    enhancement_count: int = 0
    average_score: float = 0.0


@dataclass(frozen=True, slots=True)
class ValidationReport:
    accepted: Tuple[PageRecord, ...]
    needs_enhancement: Tuple[FlaggedPage, ...]
    results: Tuple[ValidationResult, ...]
    stats: ValidationStats


# --------------------------------------------------------------------------- #
# Aggregation and run output
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class DatasetMetadata:
    total_pages: int = 0
    scraped_at: float = field(default_factory=time.time)
    scraper_used: str = ""
    mode: str = ""
    validation: Optional[ValidationStats] = None
    enhancement_applied: bool = False
    duration_ms: int = 0
    phase_durations_ms: Dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class AggregatedDataset:
    """Дедуплицированное объединение сущностей со всех страниц плюс метаданные."""

    url: str
    pages: List[PageRecord] = field(default_factory=list)
    brand_assets: BrandAssets = field(default_factory=BrandAssets)
    contact_info: ContactInfo = field(default_factory=ContactInfo)
    social_links: List[SocialLink] = field(default_factory=list)
    team_members: List[TeamMember] = field(default_factory=list)
    products: List[Product] = field(default_factory=list)
    testimonials: List[Testimonial] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    metadata: DatasetMetadata = field(default_factory=DatasetMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "pages": [p.to_dict() for p in self.pages],
            "brand_assets": asdict(self.brand_assets),
            "contact_info": asdict(self.contact_info),
            "social_links": [asdict(s) for s in self.social_links],
            "team_members": [asdict(t) for t in self.team_members],
            "products": [asdict(p) for p in self.products],
            "testimonials": [asdict(t) for t in self.testimonials],
            "images": list(self.images),
            "metadata": asdict(self.metadata),
        }

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


@dataclass(slots=True)
class RunSummary:
    phases_run: List[str] = field(default_factory=list)
    total_attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    validation_score: Optional[float] = None
    enhancement_count: int = 0
    duration_ms: int = 0
    aborted: bool = False
    timed_out: bool = False
    fatal_error: Optional[str] = None

    @property
    def partial(self) -> bool:
        return self.aborted or self.timed_out or self.failed > 0 or self.fatal_error is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phasesRun": list(self.phases_run),
            "totalAttempted": self.total_attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "validationScore": self.validation_score,
            "enhancementCount": self.enhancement_count,
            "durationMs": self.duration_ms,
            "partial": self.partial,
            "aborted": self.aborted,
            "timedOut": self.timed_out,
            "error": self.fatal_error,
        }


@dataclass(slots=True)
class PipelineResult:
    dataset: AggregatedDataset
    summary: RunSummary
    discovered: List[DiscoveredURL] = field(default_factory=list)
    correlation_id: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "correlationId": self.correlation_id,
            "summary": self.summary.to_dict(),
            "discovered": [d.to_dict() for d in self.discovered],
            "dataset": self.dataset.to_dict(),
        }

    def json(self, *, pretty: bool = False) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


__all__ = [
    "DiscoverySource",
    "DiscoveredURL",
    "BrandAssets",
    "ContactInfo",
    "SocialLink",
    "TeamMember",
    "Product",
    "Testimonial",
    "ExtractedEntities",
    "StructuredPayload",
    "RawPayload",
    "Payload",
    "PageRecord",
    "Severity",
    "ValidationIssue",
    "ValidationResult",
    "FlaggedPage",
    "ValidationStats",
    "ValidationReport",
    "DatasetMetadata",
    "AggregatedDataset",
    "RunSummary",
    "PipelineResult",
]
