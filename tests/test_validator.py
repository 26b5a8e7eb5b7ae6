# File: tests/test_validator.py
import pytest

from conftest import make_page
from site_intel.models import ExtractedEntities, Product, Severity
from site_intel.validator import ContentValidator, field_ratio, substantive_blocks


@pytest.fixture()
def validator():
    return ContentValidator(min_content_length=500, acceptance_threshold=0.6)


def codes(result):
    return [issue.code for issue in result.issues]


def test_good_page_is_accepted(validator):
    result = validator.validate_page(make_page("https://example.com/about"))
    assert result.issues == ()
    assert result.score == 1.0
    assert not result.needs_enhancement
    assert result.reason == ""


def test_raw_payload_reports_no_structured_data(validator):
    result = validator.validate_page(make_page("https://example.com/", raw=True))
    assert codes(result) == ["no-structured-data"]
    assert result.issues[0].description == "no structured data found"
    assert result.issues[0].severity is Severity.WARNING
    assert not result.needs_enhancement


def test_short_content_is_flagged(validator):
    result = validator.validate_page(make_page("https://example.com/team", text="Too short."))
    assert "low-content" in codes(result)
    assert result.needs_enhancement
    assert result.reason == "content too short: 10 chars (min 500)"


def test_score_arithmetic(validator):
    page = make_page("https://example.com/x", title="", text="tiny", raw=True)
    result = validator.validate_page(page)
    # 1.0 - 0.4 (low content) - 0.1 (no title) - 0.1 (no structured data)
    assert result.score == 0.4
    assert result.needs_enhancement


@pytest.mark.parametrize(
    "content,code",
    [
        ("<html><body><p>Hello {{ user.name }}</p></body></html>", "js-placeholders"),
        ("<html><body><div>Loading...</div></body></html>", "js-placeholders"),
        ('<html><body><div id="root"></div></body></html>', "empty-framework-roots"),
        ("<html><body><app-root></app-root></body></html>", "empty-framework-roots"),
    ],
)
def test_rendering_problems_always_flag(validator, content, code):
    result = validator.validate_page(make_page("https://example.com/app", content=content))
    assert code in codes(result)
    assert result.needs_enhancement
    assert result.score >= 0.6


def test_products_without_prices(validator):
    entities = ExtractedEntities(products=(Product("Starter", price="$10"), Product("Pro")))
    result = validator.validate_page(make_page("https://example.com/pricing", entities=entities))
    assert "no-prices" in codes(result)
    assert "1 products missing prices" in result.reasons


def test_contact_page_without_contact(validator):
    result = validator.validate_page(make_page("https://example.com/contact", entities=ExtractedEntities()))
    assert "no-contact" in codes(result)
    assert "no-structured-data" in codes(result)


def test_report_partitions_and_is_deterministic(validator):
    pages = [
        make_page("https://example.com/"),
        make_page("https://example.com/short", text="Short."),
        make_page("https://example.com/raw", raw=True),
    ]
    first = validator.validate(pages)
    second = validator.validate(pages)

    assert first == second
    assert [p.url for p in first.accepted] == ["https://example.com/", "https://example.com/raw"]
    assert [f.page.url for f in first.needs_enhancement] == ["https://example.com/short"]
    assert first.stats.total_pages == 3
    assert first.stats.valid_count == 2
    assert first.stats.enhancement_count == 1
    assert 0.0 < first.stats.average_score <= 1.0


def test_empty_input(validator):
    report = validator.validate([])
    assert report.stats.total_pages == 0
    assert report.stats.average_score == 0.0


def test_threshold_controls_flagging():
    strict = ContentValidator(acceptance_threshold=1.0)
    page = make_page("https://example.com/raw", raw=True, title="")
    # no rendering issue, only the score keeps it out
    assert strict.validate_page(page).needs_enhancement
    assert not ContentValidator().validate_page(page).needs_enhancement


def test_helpers():
    assert substantive_blocks("One two three. " + "This sentence has more than eight words in it. " * 3) == 3
    assert field_ratio(make_page("https://example.com/", raw=True)) == 0.0
    assert field_ratio(make_page("https://example.com/")) == pytest.approx(4 / 9)
