# site_intel/strategies/base.py
"""
Fetch-strategy contract and registry.

A strategy turns one URL into a :class:`~site_intel.models.PageRecord`.
Only the static strategy ships with the package; browser-backed ``dynamic``
and ``spa`` strategies plug in through :meth:`StrategyRegistry.register`.
"""
from __future__ import annotations

import abc
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

from site_intel.logger import logger
from site_intel.models import PageRecord


class StrategyKind(str, Enum):
    STATIC = "static"
    DYNAMIC = "dynamic"
    SPA = "spa"

    @property
    def weight(self) -> int:
        """Relative cost; escalation moves to a heavier kind."""
        return _WEIGHTS[self]


_WEIGHTS = {StrategyKind.STATIC: 0, StrategyKind.DYNAMIC: 1, StrategyKind.SPA: 2}


@dataclass(frozen=True, slots=True)
class SiteMetadata:
    """What site analysis learned about the target (all fields optional)."""

    technology: Optional[str] = None
    site_type: Optional[str] = None
    confidence: float = 0.0


class FetchStrategy(abc.ABC):
    """Pluggable page fetcher."""

    kind: StrategyKind = StrategyKind.STATIC
    #: stateful strategies (one browser page, one login) run a batch sequentially
    stateful: bool = False

    @property
    def name(self) -> str:
        return self.kind.value

    @abc.abstractmethod
    async def fetch(
        self,
        url: str,
        context: Optional[Mapping[str, Any]] = None,
        site: Optional[SiteMetadata] = None,
    ) -> PageRecord:
        """Fetch *url*; raise NetworkError/ParseError on failure."""

    async def close(self) -> None:
        """Release resources held by the strategy."""


class StrategyRegistry:
    """Kind → strategy lookup with fallback to the nearest lighter registered kind."""

    def __init__(self, strategies: Iterable[FetchStrategy] = ()) -> None:
        self._strategies: Dict[StrategyKind, FetchStrategy] = {}
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: FetchStrategy) -> None:
        if strategy.kind in self._strategies:
            logger.debug("Replacing %s strategy with %r", strategy.kind.value, strategy)
        self._strategies[strategy.kind] = strategy

    def __contains__(self, kind: StrategyKind) -> bool:
        return kind in self._strategies

    @property
    def kinds(self) -> list[StrategyKind]:
        return sorted(self._strategies, key=lambda k: k.weight)

    def get(self, kind: StrategyKind) -> FetchStrategy:
        if kind in self._strategies:
            return self._strategies[kind]
        lighter = [k for k in self.kinds if k.weight < kind.weight]
        candidates = lighter or self.kinds
        if not candidates:
            raise LookupError("no fetch strategies registered")
        # nearest lighter kind, else the lightest available
        chosen = candidates[-1] if lighter else candidates[0]
        logger.warning("No %s strategy registered; falling back to %s", kind.value, chosen.value)
        return self._strategies[chosen]

    def heavier(self, than: StrategyKind) -> FetchStrategy:
        """Strategy for escalation: the next heavier registered kind, else the heaviest one.

        With nothing heavier registered the returned strategy may be the same
        kind as *than*; a re-fetch can still succeed on transient failures.
        """
        heavier = [k for k in self.kinds if k.weight > than.weight]
        if heavier:
            return self._strategies[heavier[0]]
        if not self._strategies:
            raise LookupError("no fetch strategies registered")
        heaviest = self.kinds[-1]
        logger.warning("No strategy heavier than %s registered; escalating with %s", than.value, heaviest.value)
        return self._strategies[heaviest]

    async def close(self) -> None:
        for strategy in self._strategies.values():
            await strategy.close()


__all__ = ["StrategyKind", "SiteMetadata", "FetchStrategy", "StrategyRegistry"]
