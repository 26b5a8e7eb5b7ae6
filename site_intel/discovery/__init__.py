# File: site_intel/discovery/__init__.py
"""site_intel.discovery: Поиск и нормализация страниц сайта (sitemap, главная, блоги, типовые пути)."""

from .coordinator import DiscoveryCoordinator, DiscoveryResult, merge_candidates, rank_and_cap
from .links import extract_section_links, heuristic_priority
from .robots import RobotsTxtRules, fetch_robots
from .sitemap import SitemapEntry, collect_sitemap_entries, parse_sitemap

__all__ = [
    "DiscoveryCoordinator",
    "DiscoveryResult",
    "merge_candidates",
    "rank_and_cap",
    "extract_section_links",
    "heuristic_priority",
    "RobotsTxtRules",
    "fetch_robots",
    "SitemapEntry",
    "collect_sitemap_entries",
    "parse_sitemap",
]
