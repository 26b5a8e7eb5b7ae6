# site_intel/strategies/extraction.py
"""Entity extraction from parsed HTML.

Turns one page's markup into :class:`~site_intel.models.ExtractedEntities`:

* brand assets: logo, favicon, colors, fonts, gradients;
* contact info: emails, phones, postal addresses, contact-page URL;
* social links (one per platform), team members, products, testimonials;
* images (absolute URLs, document order).

Heuristics are intentionally shallow: class/id/itemprop conventions that
common themes use.  Every list keeps document order and drops exact repeats;
cross-page dedup and caps belong to the aggregator.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Iterable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Comment, Tag

from site_intel.models import (
    BrandAssets,
    ContactInfo,
    ExtractedEntities,
    Product,
    SocialLink,
    TeamMember,
    Testimonial,
)

__all__: Sequence[str] = ("extract_entities", "page_title", "visible_text", "SOCIAL_PLATFORMS")

SOCIAL_PLATFORMS = {
    "facebook.com": "facebook",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "linkedin.com": "linkedin",
    "instagram.com": "instagram",
    "youtube.com": "youtube",
    "tiktok.com": "tiktok",
    "pinterest.com": "pinterest",
    "github.com": "github",
    "medium.com": "medium",
}

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"(?:\+\d{1,3}[\s.-]?)?(?:\(\d{2,4}\)[\s.-]?)?\d{2,4}[\s.-]\d{2,4}[\s.-]\d{2,4}")
HEX_COLOR_RE = re.compile(r"#(?:[0-9a-fA-F]{6}|[0-9a-fA-F]{3})\b")
RGB_COLOR_RE = re.compile(r"rgba?\(\s*\d{1,3}\s*,\s*\d{1,3}\s*,\s*\d{1,3}\s*(?:,\s*[\d.]+\s*)?\)")
FONT_RE = re.compile(r"font-family\s*:\s*([^;}{]+)", re.I)
GRADIENT_RE = re.compile(r"(?:linear|radial|conic)-gradient\([^;{}]*\)", re.I)
PRICE_RE = re.compile(r"(?:[$€£¥₽]\s?\d[\d,. ]*|\d[\d,. ]*\s?(?:USD|EUR|GBP|RUB|₽))")

_GENERIC_FONTS = {"inherit", "initial", "sans-serif", "serif", "monospace", "cursive", "system-ui", "-apple-system"}
_IGNORED_EMAIL_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp")
_TEAM_CLASSES = re.compile(r"^(team-member|member|person|staff-member|employee|profile-card)$", re.I)
_PRODUCT_CLASSES = re.compile(r"^(product|product-card|product-item|pricing-card|plan)$", re.I)
_TESTIMONIAL_CLASSES = re.compile(r"^(testimonial|testimonial-card|review)$", re.I)


def page_title(soup: BeautifulSoup) -> str:
    title_tag = soup.find("title")
    if title_tag is not None:
        title = title_tag.get_text(strip=True)
        if title:
            return title
    h1 = soup.find("h1")
    return h1.get_text(" ", strip=True) if h1 is not None else ""


def visible_text(soup: BeautifulSoup) -> str:
    """Visible text (skips <script>, <style>, etc.) without mutating *soup*."""
    parts: List[str] = []
    for node in soup.find_all(string=True):
        if isinstance(node, Comment):
            continue
        parent = node.parent
        if parent is not None and parent.name in ("script", "style", "noscript", "template"):
            continue
        text = node.strip()
        if text:
            parts.append(text)
    return " ".join(parts)


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(v for v in values if v))


def _text_of(node: Optional[Tag]) -> Optional[str]:
    if node is None:
        return None
    text = node.get_text(" ", strip=True)
    return text or None


def _first(root: Tag, selectors: str) -> Optional[Tag]:
    found = root.select_one(selectors)
    return found if isinstance(found, Tag) else None


def _class_match(pattern: re.Pattern[str]):
    def matcher(value: Optional[str]) -> bool:
        return bool(value and pattern.search(value))

    return matcher


# ---------------------------------------------------------------------------
# Brand
# ---------------------------------------------------------------------------


def _styles(soup: BeautifulSoup) -> str:
    chunks = [tag.get_text() for tag in soup.find_all("style")]
    chunks += [str(tag.get("style")) for tag in soup.find_all(style=True)]
    return "\n".join(chunks)


def _logo(soup: BeautifulSoup, url: str) -> Optional[str]:
    for img in soup.find_all("img"):
        if not isinstance(img, Tag):
            continue
        haystack = " ".join(
            str(v) for v in (img.get("alt"), img.get("src"), img.get("id"), " ".join(img.get("class") or []))
        ).lower()
        src = img.get("src")
        if "logo" in haystack and isinstance(src, str) and src.strip():
            return urljoin(url, src.strip())
    og = soup.find("meta", attrs={"property": "og:logo"})
    if isinstance(og, Tag) and og.get("content"):
        return urljoin(url, str(og.get("content")))
    return None


def _favicon(soup: BeautifulSoup, url: str) -> Optional[str]:
    for link in soup.find_all("link", rel=True):
        if not isinstance(link, Tag):
            continue
        rels = [r.lower() for r in (link.get("rel") or [])]
        if "icon" in rels and link.get("href"):
            return urljoin(url, str(link.get("href")))
    return None


def _fonts(css: str) -> tuple[str, ...]:
    fonts = []
    for declaration in FONT_RE.findall(css):
        for name in declaration.split(","):
            name = name.strip().strip("'\"").strip()
            if name and name.lower() not in _GENERIC_FONTS and not name.startswith("var("):
                fonts.append(name)
    return _unique(fonts)


def extract_brand(soup: BeautifulSoup, url: str) -> BrandAssets:
    css = _styles(soup)
    colors = _unique(c.lower() for c in HEX_COLOR_RE.findall(css) + RGB_COLOR_RE.findall(css))
    theme = soup.find("meta", attrs={"name": "theme-color"})
    if isinstance(theme, Tag) and theme.get("content"):
        colors = _unique((str(theme.get("content")).lower(),) + colors)
    return BrandAssets(
        logo=_logo(soup, url),
        favicon=_favicon(soup, url),
        colors=colors,
        fonts=_fonts(css),
        gradients=_unique(g.strip() for g in GRADIENT_RE.findall(css)),
    )


# ---------------------------------------------------------------------------
# Contact & social
# ---------------------------------------------------------------------------


def extract_contact(soup: BeautifulSoup, url: str, text: str) -> ContactInfo:
    emails: List[str] = []
    phones: List[str] = []
    for a in soup.find_all("a", href=True):
        href = str(a.get("href")).strip()
        if href.lower().startswith("mailto:"):
            emails.append(href[7:].split("?", 1)[0].strip().lower())
        elif href.lower().startswith("tel:"):
            phones.append(href[4:].strip())
    emails += [
        e.lower() for e in EMAIL_RE.findall(text) if not e.lower().endswith(_IGNORED_EMAIL_SUFFIXES)
    ]
    phones += [p.strip() for p in PHONE_RE.findall(text) if sum(ch.isdigit() for ch in p) >= 7]

    addresses: List[str] = []
    for node in soup.find_all("address"):
        addresses.append(node.get_text(" ", strip=True))
    for node in soup.find_all(attrs={"itemprop": "address"}):
        addresses.append(node.get_text(" ", strip=True))

    contact_page = url if "contact" in urlparse(url).path.lower() else None
    return ContactInfo(
        emails=_unique(emails),
        phones=_unique(phones),
        addresses=_unique(addresses),
        contact_page_url=contact_page,
    )


def platform_for(url: str) -> Optional[str]:
    host = urlparse(url).netloc.lower().split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    for domain, platform in SOCIAL_PLATFORMS.items():
        if host == domain or host.endswith("." + domain):
            return platform
    return None


def extract_social(soup: BeautifulSoup) -> tuple[SocialLink, ...]:
    links: dict[str, SocialLink] = {}
    for a in soup.find_all("a", href=True):
        href = str(a.get("href")).strip()
        platform = platform_for(href)
        if platform and platform not in links:
            links[platform] = SocialLink(platform=platform, url=href)
    return tuple(links.values())


# ---------------------------------------------------------------------------
# People, products, testimonials
# ---------------------------------------------------------------------------


def extract_team(soup: BeautifulSoup, url: str) -> tuple[TeamMember, ...]:
    members: dict[str, TeamMember] = {}
    cards = soup.find_all(class_=_class_match(_TEAM_CLASSES))
    cards += soup.find_all(attrs={"itemtype": re.compile(r"schema\.org/Person", re.I)})
    for card in cards:
        if not isinstance(card, Tag):
            continue
        name = _text_of(_first(card, '[itemprop="name"], .name, h3, h4, h2'))
        if not name or name in members:
            continue
        role = _text_of(_first(card, '[itemprop="jobTitle"], .role, .title, .position, .job-title, p'))
        img = card.find("img")
        image = urljoin(url, str(img.get("src"))) if isinstance(img, Tag) and img.get("src") else None
        members[name] = TeamMember(name=name, role=role if role != name else None, image=image)
    return tuple(members.values())


def extract_products(soup: BeautifulSoup) -> tuple[Product, ...]:
    products: dict[str, Product] = {}
    cards = soup.find_all(class_=_class_match(_PRODUCT_CLASSES))
    cards += soup.find_all(attrs={"itemtype": re.compile(r"schema\.org/Product", re.I)})
    for card in cards:
        if not isinstance(card, Tag):
            continue
        name = _text_of(_first(card, '[itemprop="name"], .product-title, .product-name, .name, h2, h3, h4'))
        if not name or name in products:
            continue
        price_node = _first(card, '[itemprop="price"], .price, .amount')
        price = _text_of(price_node)
        if price is None:
            match = PRICE_RE.search(card.get_text(" ", strip=True))
            price = match.group(0).strip() if match else None
        description = _text_of(_first(card, '[itemprop="description"], .description, p'))
        products[name] = Product(name=name, description=description, price=price)
    return tuple(products.values())


def extract_testimonials(soup: BeautifulSoup) -> tuple[Testimonial, ...]:
    found: dict[str, Testimonial] = {}
    cards = soup.find_all(class_=_class_match(_TESTIMONIAL_CLASSES))
    cards += [b for b in soup.find_all("blockquote") if b not in cards]
    for card in cards:
        if not isinstance(card, Tag):
            continue
        author = _text_of(_first(card, "cite, .author, .name, [itemprop='author'], figcaption"))
        if not author or author in found:
            continue
        quote_node = _first(card, "q, p, .quote, .text")
        quote = _text_of(quote_node) or card.get_text(" ", strip=True)
        company = _text_of(_first(card, ".company, .organization"))
        found[author] = Testimonial(name=author, quote=quote, company=company)
    return tuple(found.values())


def extract_images(soup: BeautifulSoup, url: str) -> tuple[str, ...]:
    images = []
    for img in soup.find_all("img"):
        if not isinstance(img, Tag):
            continue
        src = img.get("src") or img.get("data-src")
        if isinstance(src, str) and src.strip() and not src.startswith("data:"):
            images.append(urljoin(url, src.strip()))
    return _unique(images)


def extract_entities(soup: BeautifulSoup, url: str, text: Optional[str] = None) -> ExtractedEntities:
    """Run every extractor over one parsed page."""
    if text is None:
        text = visible_text(soup)
    return ExtractedEntities(
        brand_assets=extract_brand(soup, url),
        contact_info=extract_contact(soup, url, text),
        social_links=extract_social(soup),
        team_members=extract_team(soup, url),
        products=extract_products(soup),
        testimonials=extract_testimonials(soup),
        images=extract_images(soup, url),
    )
