# site_intel/validator.py
"""
Content validator: a pure scoring function over page records.

No I/O and no clock: the same records always produce the same report.
Each page starts at 1.0, loses 0.4 for short content, 0.3 per other fatal
issue and 0.1 per warning, gains small bonuses for good signals, and is
clamped to [0, 1].  A page is flagged for enhancement when its score is
below the acceptance threshold or it shows a rendering problem that only a
heavier strategy can fix.
"""
from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from site_intel.models import (
    FlaggedPage,
    PageRecord,
    RawPayload,
    Severity,
    StructuredPayload,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    ValidationStats,
)

LOW_CONTENT = "low-content"
NO_TITLE = "no-title"
NO_STRUCTURED_DATA = "no-structured-data"
JS_PLACEHOLDERS = "js-placeholders"
EMPTY_ROOTS = "empty-framework-roots"
NO_PRICES = "no-prices"
NO_CONTACT = "no-contact"

# problems a lighter strategy cannot fix on its own
RENDERING_ISSUES = frozenset({LOW_CONTENT, JS_PLACEHOLDERS, EMPTY_ROOTS, NO_PRICES})

_PLACEHOLDER_PATTERNS = (
    re.compile(r"\{\{[^}]{1,80}\}\}"),
    re.compile(r"\bloading\.\.\.", re.I),
    re.compile(r"\bskeleton\b", re.I),
)

_EMPTY_ROOT_PATTERNS = (
    ("#root", re.compile(r'<div[^>]*\bid=["\']root["\'][^>]*>\s*</div>', re.I)),
    ("#app", re.compile(r'<div[^>]*\bid=["\']app["\'][^>]*>\s*</div>', re.I)),
    ("#__next", re.compile(r'<div[^>]*\bid=["\']__next["\'][^>]*>\s*</div>', re.I)),
    ("app-root", re.compile(r"<app-root[^>]*>\s*</app-root>", re.I)),
    ("[data-reactroot]", re.compile(r"<div[^>]*\bdata-reactroot[^>]*>\s*</div>", re.I)),
)

_PARAGRAPH_SPLIT = re.compile(r"(?<=[.!?])\s+")


class ContentValidator:
    """Scores :class:`PageRecord` objects and partitions them."""

    def __init__(self, *, min_content_length: int = 500, acceptance_threshold: float = 0.6) -> None:
        self.min_content_length = min_content_length
        self.acceptance_threshold = acceptance_threshold

    def validate_page(self, page: PageRecord) -> ValidationResult:
        issues = self._issues(page)
        score = self._score(page, issues)
        flagged = score < self.acceptance_threshold or any(i.code in RENDERING_ISSUES for i in issues)
        return ValidationResult(page=page, score=score, issues=tuple(issues), needs_enhancement=flagged)

    def validate(self, pages: Sequence[PageRecord]) -> ValidationReport:
        results = tuple(self.validate_page(p) for p in pages)
        accepted = tuple(r.page for r in results if not r.needs_enhancement)
        flagged = tuple(FlaggedPage(r.page, r.reason) for r in results if r.needs_enhancement)
        average = round(sum(r.score for r in results) / len(results), 4) if results else 0.0
        stats = ValidationStats(
            total_pages=len(results),
            valid_count=len(accepted),
            enhancement_count=len(flagged),
            average_score=average,
        )
        return ValidationReport(accepted=accepted, needs_enhancement=flagged, results=results, stats=stats)

    # ------------------------------------------------------------------ #
    # metrics
    # ------------------------------------------------------------------ #

    def _issues(self, page: PageRecord) -> List[ValidationIssue]:
        issues: List[ValidationIssue] = []
        length = len(page.text.strip())
        if length < self.min_content_length:
            issues.append(
                ValidationIssue(
                    LOW_CONTENT,
                    Severity.FATAL,
                    f"content too short: {length} chars (min {self.min_content_length})",
                )
            )
        if not page.title.strip():
            issues.append(ValidationIssue(NO_TITLE, Severity.WARNING, "missing page title"))

        payload = page.payload
        if isinstance(payload, RawPayload) or (
            isinstance(payload, StructuredPayload) and not payload.entities.populated_fields()
        ):
            issues.append(ValidationIssue(NO_STRUCTURED_DATA, Severity.WARNING, "no structured data found"))

        placeholders = count_placeholders(page.content)
        if placeholders:
            issues.append(
                ValidationIssue(
                    JS_PLACEHOLDERS,
                    Severity.FATAL,
                    f"{placeholders} JavaScript placeholders - content not fully rendered",
                )
            )
        roots = empty_framework_roots(page.content)
        if roots:
            issues.append(
                ValidationIssue(EMPTY_ROOTS, Severity.FATAL, f"empty framework root: {', '.join(roots)}")
            )

        entities = page.entities
        missing_prices = sum(1 for p in entities.products if not p.price)
        if missing_prices:
            issues.append(
                ValidationIssue(NO_PRICES, Severity.FATAL, f"{missing_prices} products missing prices")
            )
        if "contact" in page.url.lower() and not entities.has_contact():
            issues.append(
                ValidationIssue(NO_CONTACT, Severity.WARNING, "contact page missing contact information")
            )
        return issues

    def _score(self, page: PageRecord, issues: Sequence[ValidationIssue]) -> float:
        score = 1.0
        for issue in issues:
            if issue.code == LOW_CONTENT:
                score -= 0.4
            elif issue.severity is Severity.FATAL:
                score -= 0.3
            else:
                score -= 0.1

        entities = page.entities
        if len(page.text.strip()) >= self.min_content_length and substantive_blocks(page.text) >= 3:
            score += 0.1
        if page.title.strip():
            score += 0.05
        if entities.has_contact():
            score += 0.05
        if entities.images:
            score += 0.05
        score += 0.1 * field_ratio(page)
        return round(max(0.0, min(1.0, score)), 4)


def count_placeholders(content: str) -> int:
    return sum(len(p.findall(content)) for p in _PLACEHOLDER_PATTERNS)


def empty_framework_roots(content: str) -> Tuple[str, ...]:
    return tuple(name for name, pattern in _EMPTY_ROOT_PATTERNS if pattern.search(content))


def substantive_blocks(text: str, min_words: int = 8) -> int:
    """Number of sentences with at least *min_words* words."""
    return sum(1 for s in _PARAGRAPH_SPLIT.split(text) if len(s.split()) >= min_words)


def field_ratio(page: PageRecord) -> float:
    """Populated entity fields / expected fields (0.0 for raw-only pages)."""
    payload = page.payload
    if not isinstance(payload, StructuredPayload):
        return 0.0
    expected = len(payload.entities.EXPECTED_FIELDS)
    return len(payload.entities.populated_fields()) / expected


__all__ = ["ContentValidator", "RENDERING_ISSUES", "field_ratio", "substantive_blocks"]
