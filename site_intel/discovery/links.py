# site_intel/discovery/links.py
"""
Section-aware link extraction for the homepage and blog crawls.

Links are collected separately from footer, navigation, header and body.
The footer goes first: it often lists pages that neither the menu nor the
sitemap mention, so its titles win deduplication.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Set
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_intel.utils import normalize_url, same_site

SECTIONS = ("footer", "nav", "header", "body")

SOCIAL_HOSTS = frozenset(
    {
        "facebook.com",
        "twitter.com",
        "x.com",
        "linkedin.com",
        "instagram.com",
        "youtube.com",
        "tiktok.com",
        "pinterest.com",
        "github.com",
        "medium.com",
        "t.me",
        "vk.com",
    }
)

BINARY_EXTENSIONS = frozenset(
    {
        ".pdf", ".zip", ".gz", ".rar", ".7z", ".tar",
        ".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".ico", ".bmp",
        ".mp3", ".mp4", ".avi", ".mov", ".webm", ".wav",
        ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx",
        ".css", ".js", ".json", ".xml", ".woff", ".woff2", ".ttf", ".exe", ".dmg",
    }
)

_SKIP_SCHEMES = ("mailto:", "tel:", "javascript:", "data:", "sms:")

_HIGH_PRIORITY = re.compile(r"/(about|contact|services?|team|company|who-we-are)(/|$)", re.I)
_BLOG_PRIORITY = re.compile(r"/(blog|news|articles|posts|insights|resources)(/|$)", re.I)


@dataclass(frozen=True, slots=True)
class FoundLink:
    url: str
    title: str
    section: str


def is_social_host(url: str) -> bool:
    host = urlparse(url).netloc.lower().split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return any(host == s or host.endswith("." + s) for s in SOCIAL_HOSTS)


def has_binary_extension(url: str) -> bool:
    path = urlparse(url).path.lower()
    dot = path.rfind(".")
    return dot > path.rfind("/") and path[dot:] in BINARY_EXTENSIONS


def heuristic_priority(url: str, base_url: str) -> float:
    """homepage=1.0, about/contact/services=0.8, blog/news=0.6, other=0.5."""
    if normalize_url(url) == normalize_url(base_url):
        return 1.0
    path = urlparse(url).path
    if _HIGH_PRIORITY.search(path):
        return 0.8
    if _BLOG_PRIORITY.search(path):
        return 0.6
    return 0.5


def accept_href(href: str, page_url: str, base_url: str) -> str | None:
    """Resolve *href* and return its normalized form, or None if it must be dropped."""
    raw = href.strip()
    if not raw or raw.startswith("#") or raw.lower().startswith(_SKIP_SCHEMES):
        return None
    absolute = urljoin(page_url, raw)
    if not same_site(absolute, base_url) or is_social_host(absolute):
        return None
    if has_binary_extension(absolute):
        return None
    return normalize_url(absolute)


def _section_roots(soup: BeautifulSoup, section: str) -> List[Tag]:
    if section == "body":
        body = soup.body or soup
        return [body] if isinstance(body, Tag) else []
    roots = [t for t in soup.find_all(section) if isinstance(t, Tag)]
    if section == "footer":
        roots += [
            t for t in soup.select('[class*="footer"], [id*="footer"], [role="contentinfo"]')
            if isinstance(t, Tag)
        ]
    elif section == "nav":
        roots += [t for t in soup.select('[role="navigation"]') if isinstance(t, Tag)]
    return roots


def extract_section_links(html: str, page_url: str, base_url: str) -> List[FoundLink]:
    """
    Extract internal links grouped by page section (footer, nav, header, body).

    Each normalized URL appears once, attributed to the first section (in
    ``SECTIONS`` order) that contains it.
    """
    soup = BeautifulSoup(html, "html.parser")
    seen: Set[str] = set()
    found: List[FoundLink] = []
    for section in SECTIONS:
        for root in _section_roots(soup, section):
            for tag in root.find_all("a", href=True):
                if not isinstance(tag, Tag):
                    continue
                href_val = tag.get("href")
                if not isinstance(href_val, str):
                    continue
                url = accept_href(href_val, page_url, base_url)
                if url is None or url in seen:
                    continue
                seen.add(url)
                title = tag.get_text(" ", strip=True) or str(tag.get("title") or "")
                found.append(FoundLink(url, title[:200], section))
    return found


__all__ = [
    "FoundLink",
    "SECTIONS",
    "extract_section_links",
    "heuristic_priority",
    "accept_href",
    "is_social_host",
    "has_binary_extension",
]
