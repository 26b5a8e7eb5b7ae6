# File: tests/test_aggregator.py
from conftest import make_page
from site_intel.aggregator import aggregate_pages, find_brand_guidelines
from site_intel.config import PipelineConfig
from site_intel.models import (
    BrandAssets,
    ContactInfo,
    ExtractedEntities,
    Product,
    SocialLink,
    TeamMember,
    Testimonial,
    ValidationStats,
)

SITE = "https://example.com/"


def page(path, **entities):
    return make_page(f"https://example.com{path}", entities=ExtractedEntities(**entities))


def test_first_occurrence_wins_by_natural_key():
    pages = [
        page("/team", team_members=(TeamMember("Jane Doe", "CEO"), TeamMember("John Roe", "CTO"))),
        page("/about", team_members=(TeamMember("Jane Doe", "Founder"),)),
        page("/pricing", products=(Product("Pro", price="$49"),)),
        page("/shop", products=(Product("Pro", price="$59"), Product("Basic", price="$9"))),
        page("/reviews", testimonials=(Testimonial("Alex", "Great"), Testimonial("Alex", "Again"))),
    ]
    dataset = aggregate_pages(pages, SITE)

    assert [(m.name, m.role) for m in dataset.team_members] == [("Jane Doe", "CEO"), ("John Roe", "CTO")]
    assert [(p.name, p.price) for p in dataset.products] == [("Pro", "$49"), ("Basic", "$9")]
    assert [t.quote for t in dataset.testimonials] == ["Great"]


def test_social_links_one_per_platform():
    pages = [
        page("/", social_links=(SocialLink("linkedin", "https://linkedin.com/company/a"),)),
        page("/about", social_links=(
            SocialLink("linkedin", "https://linkedin.com/company/b"),
            SocialLink("github", "https://github.com/a"),
        )),
    ]
    dataset = aggregate_pages(pages, SITE)
    assert [(s.platform, s.url) for s in dataset.social_links] == [
        ("linkedin", "https://linkedin.com/company/a"),
        ("github", "https://github.com/a"),
    ]


def test_homepage_brand_goes_first_and_is_capped():
    pages = [
        page("/about", brand_assets=BrandAssets(logo="https://example.com/about-logo.png", colors=("#111", "#222", "#333"))),
        page("/", brand_assets=BrandAssets(logo="https://example.com/logo.png", colors=("#aaa", "#bbb"), fonts=("Inter",))),
    ]
    config = PipelineConfig(max_colors=3)
    dataset = aggregate_pages(pages, SITE, config)

    assert dataset.brand_assets.logo == "https://example.com/logo.png"
    assert dataset.brand_assets.colors == ("#aaa", "#bbb", "#111")
    assert dataset.brand_assets.fonts == ("Inter",)
    # pages themselves keep their order
    assert [p.url for p in dataset.pages] == ["https://example.com/about", "https://example.com/"]


def test_contact_values_deduplicated_and_capped():
    pages = [
        page("/", contact_info=ContactInfo(emails=("a@example.com", "b@example.com"), phones=("1",))),
        page("/contact", contact_info=ContactInfo(
            emails=("b@example.com", "c@example.com"),
            contact_page_url="https://example.com/contact",
        )),
    ]
    dataset = aggregate_pages(pages, SITE, PipelineConfig(max_emails=2))
    assert dataset.contact_info.emails == ("a@example.com", "b@example.com")
    assert dataset.contact_info.phones == ("1",)
    assert dataset.contact_info.contact_page_url == "https://example.com/contact"


def test_zero_cap_yields_nothing():
    pages = [page("/", images=("https://example.com/a.png",))]
    assert aggregate_pages(pages, SITE, PipelineConfig(max_images=0)).images == []


def test_brand_guidelines_pdf_resolved_against_origin():
    content = (
        "<html><body><section><h2>Press kit</h2>"
        "<p>Download our brand guidelines here:</p>"
        '<a href="/assets/Brand-Guide.pdf?v=2">PDF</a>'
        "</section></body></html>"
    )
    pages = [
        make_page("https://example.com/blog/post", content='<a href="/whitepaper.pdf">Whitepaper</a>'),
        make_page("https://example.com/press/media", content=content),
    ]
    assert find_brand_guidelines(pages) == "https://example.com/assets/Brand-Guide.pdf"


def test_brand_guidelines_need_nearby_phrase():
    filler = "x" * 400
    content = f"<p>Style guide</p>{filler}<a href='/files/annual-report.pdf'>Report</a>"
    assert find_brand_guidelines([make_page("https://example.com/about", content=content)]) is None


def test_metadata():
    stats = ValidationStats(total_pages=1, valid_count=1, enhancement_count=0, average_score=0.9)
    dataset = aggregate_pages(
        [make_page("https://example.com/")], SITE,
        scraper_used="static", mode="dynamic", validation=stats, enhancement_applied=True,
    )
    assert dataset.metadata.total_pages == 1
    assert dataset.metadata.scraper_used == "hybrid-enhanced"
    assert dataset.metadata.validation == stats
    data = dataset.to_dict()
    assert data["metadata"]["mode"] == "dynamic"
    assert data["pages"][0]["url"] == "https://example.com/"


def test_empty_input():
    dataset = aggregate_pages([], SITE, scraper_used="static")
    assert dataset.pages == []
    assert dataset.brand_assets == BrandAssets()
    assert dataset.metadata.scraper_used == "static"
