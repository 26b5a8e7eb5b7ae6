# File: site_intel/strategies/__init__.py
"""site_intel.strategies: Стратегии загрузки страниц, их выбор и извлечение сущностей."""

from .base import FetchStrategy, SiteMetadata, StrategyKind, StrategyRegistry
from .detection import detect_technology
from .extraction import extract_entities
from .selector import TECHNOLOGY_STRATEGY, select_strategy
from .static import StaticStrategy

__all__ = [
    "FetchStrategy",
    "SiteMetadata",
    "StrategyKind",
    "StrategyRegistry",
    "detect_technology",
    "extract_entities",
    "TECHNOLOGY_STRATEGY",
    "select_strategy",
    "StaticStrategy",
]
