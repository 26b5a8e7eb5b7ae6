# File: site_intel/strategies/detection.py
"""site_intel.strategies.detection: Определение технологии сайта по HTML главной страницы."""

from __future__ import annotations

import re
from typing import List, Sequence, Tuple

from bs4 import BeautifulSoup

from site_intel.strategies.base import SiteMetadata

# (technology, markers); first match in this order wins
_MARKERS: Sequence[Tuple[str, Sequence[str]]] = (
    ("woocommerce", ("woocommerce",)),
    ("wordpress", ("wp-content/", "wp-includes/")),
    ("drupal", ("drupal-settings-json", "/sites/default/files/", "drupal.js")),
    ("joomla", ("/media/jui/", "joomla!")),
    ("shopify", ("cdn.shopify.com", "shopify.theme")),
    ("magento", ("mage/cookies", "magento_")),
    ("wix", ("static.wixstatic.com", "wix-warmup-data")),
    ("squarespace", ("static1.squarespace.com", "squarespace-config")),
    ("webflow", ("data-wf-site", "webflow.js")),
    ("gatsby", ('id="___gatsby"', "/page-data/")),
    ("next.js", ('id="__next"', "/_next/static/")),
    ("nuxt", ('id="__nuxt"', "window.__nuxt__", "/_nuxt/")),
    ("angular", ("ng-version=", "<app-root")),
    ("vue", ("data-v-app", "data-server-rendered", 'id="app"')),
    ("react", ("data-reactroot", 'id="root"')),
)

_GENERATOR = re.compile(r"(wordpress|drupal|joomla|hugo|jekyll|gatsby|wix|squarespace|webflow)", re.I)

_SPA_TECH = {"react", "vue", "angular"}


def detect_technology(html: str) -> SiteMetadata:
    """Определяет технологию по meta generator и характерным маркерам разметки.

    Возвращает ``SiteMetadata()`` без технологии, если ничего не найдено.
    """
    if not html:
        return SiteMetadata()

    soup = BeautifulSoup(html, "html.parser")
    generator = soup.find("meta", attrs={"name": re.compile("^generator$", re.I)})
    if generator is not None:
        match = _GENERATOR.search(str(generator.get("content") or ""))
        if match:
            tech = match.group(1).lower()
            return SiteMetadata(technology=tech, site_type="static", confidence=0.9)

    lowered = html.lower()
    hits: List[str] = [tech for tech, markers in _MARKERS if any(m.lower() in lowered for m in markers)]
    if not hits:
        return SiteMetadata()
    tech = hits[0]
    site_type = "spa" if tech in _SPA_TECH else "static"
    return SiteMetadata(technology=tech, site_type=site_type, confidence=min(1.0, 0.5 + 0.1 * len(hits)))


__all__ = ["detect_technology"]
