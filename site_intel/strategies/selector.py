# site_intel/strategies/selector.py
"""Technology → strategy mapping. Advisory only: the pipeline may still escalate."""
from __future__ import annotations

from typing import Dict, Optional

from site_intel.strategies.base import SiteMetadata, StrategyKind

TECHNOLOGY_STRATEGY: Dict[str, StrategyKind] = {
    # server-rendered CMS and static site generators
    "wordpress": StrategyKind.STATIC,
    "woocommerce": StrategyKind.STATIC,
    "drupal": StrategyKind.STATIC,
    "joomla": StrategyKind.STATIC,
    "hugo": StrategyKind.STATIC,
    "jekyll": StrategyKind.STATIC,
    "gatsby": StrategyKind.STATIC,
    "next.js": StrategyKind.STATIC,
    "squarespace": StrategyKind.STATIC,
    "webflow": StrategyKind.STATIC,
    # client-side rendered applications
    "react": StrategyKind.SPA,
    "vue": StrategyKind.SPA,
    "angular": StrategyKind.SPA,
    # hosted commerce and builders with script-driven content
    "nuxt": StrategyKind.DYNAMIC,
    "shopify": StrategyKind.DYNAMIC,
    "magento": StrategyKind.DYNAMIC,
    "wix": StrategyKind.DYNAMIC,
}

SITE_TYPE_STRATEGY: Dict[str, StrategyKind] = {
    "static": StrategyKind.STATIC,
    "spa": StrategyKind.SPA,
}


def select_strategy(site: Optional[SiteMetadata]) -> StrategyKind:
    """Pick a strategy kind for *site*; unknown or missing analysis → dynamic."""
    if site is None:
        return StrategyKind.DYNAMIC
    if site.technology:
        kind = TECHNOLOGY_STRATEGY.get(site.technology.strip().lower())
        if kind is not None:
            return kind
    if site.site_type:
        kind = SITE_TYPE_STRATEGY.get(site.site_type.strip().lower())
        if kind is not None:
            return kind
    return StrategyKind.DYNAMIC


__all__ = ["TECHNOLOGY_STRATEGY", "select_strategy"]
