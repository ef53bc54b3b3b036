"""Combined-ratio resolution for a group of patterns.

The ratio is taken from the first source that has usable data:

1. learned ratio histories of every pattern in the group
2. stored average ratios (the 1.0 placeholder excluded)
3. raw historical cutting-list items for the same product/size/profile/measurement
4. first-observation ``quantity / order_quantity`` of each pattern
5. 1.0, reported as a "1:1 fallback"

A usable ratio is finite and strictly positive.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from cutlist_suggest.engines.pattern_selector import PatternGroup
from cutlist_suggest.repositories.order_history_repo import OrderHistoryRepository
from cutlist_suggest.schemas.pattern import Pattern, RatioSample
from cutlist_suggest.schemas.suggestion import RatioSource

logger = logging.getLogger(__name__)

FALLBACK_RATIO = 1.0
# Older rows were written with average_ratio = 1.0 when nothing was known.
PLACEHOLDER_AVERAGE_RATIO = 1.0


@dataclass
class RatioResolution:
    ratio: float
    source: RatioSource
    sample_count: int
    reasoning: str
    # Filled only when the ratio came from order history, for write-back.
    history_samples: List[RatioSample] = field(default_factory=list)

    @property
    def is_fallback(self) -> bool:
        return self.source == RatioSource.FALLBACK


def _usable(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


def _fallback(reason: str) -> RatioResolution:
    return RatioResolution(
        ratio=FALLBACK_RATIO,
        source=RatioSource.FALLBACK,
        sample_count=0,
        reasoning=f"{reason}, using 1:1 fallback",
    )


class RatioResolver:
    """Runs the fallback chain for one group."""

    def __init__(self, order_history_repo: Optional[OrderHistoryRepository] = None):
        self.order_history = order_history_repo

    def resolve(
        self,
        group: PatternGroup,
        product_name: str,
        size: str,
        representative: Optional[Pattern] = None,
    ) -> RatioResolution:
        representative = representative or group.first
        resolution = (
            self._from_ratio_history(group.patterns)
            or self._from_average_ratios(group.patterns)
            or self._from_order_history(product_name, size, representative)
            or self._from_raw_quantities(group.patterns)
            or _fallback("No ratio data found")
        )

        if not _usable(resolution.ratio):
            logger.warning(
                "unusable ratio %r from %s for %s|%s, degrading to fallback",
                resolution.ratio, resolution.source.value, group.profile, group.measurement,
            )
            resolution = _fallback(f"Unusable ratio from {resolution.source.value}")

        logger.debug(
            "resolved %s|%s ratio=%.4f source=%s samples=%d",
            group.profile, group.measurement, resolution.ratio,
            resolution.source.value, resolution.sample_count,
        )
        return resolution

    # ── chain steps ──────────────────────────────────────────────────

    def _from_ratio_history(self, patterns: Iterable[Pattern]) -> Optional[RatioResolution]:
        ratios = [s.ratio for p in patterns for s in p.ratio_history if _usable(s.ratio)]
        if not ratios:
            return None
        return RatioResolution(
            ratio=_mean(ratios),
            source=RatioSource.RATIO_HISTORY,
            sample_count=len(ratios),
            reasoning=f"Average of {len(ratios)} learned ratio samples",
        )

    def _from_average_ratios(self, patterns: Iterable[Pattern]) -> Optional[RatioResolution]:
        averages = [
            p.average_ratio
            for p in patterns
            if _usable(p.average_ratio) and p.average_ratio != PLACEHOLDER_AVERAGE_RATIO
        ]
        if not averages:
            return None
        return RatioResolution(
            ratio=_mean(averages),
            source=RatioSource.AVERAGE_RATIO,
            sample_count=len(averages),
            reasoning=f"Average of {len(averages)} stored average ratios",
        )

    def _from_order_history(
        self,
        product_name: str,
        size: str,
        representative: Pattern,
    ) -> Optional[RatioResolution]:
        if self.order_history is None:
            return None
        samples = self.order_history.find_ratio_samples(
            product_name, size, representative.profile, representative.measurement
        )
        samples = [s for s in samples if _usable(s.ratio)]
        if not samples:
            return None
        return RatioResolution(
            ratio=_mean([s.ratio for s in samples]),
            source=RatioSource.ORDER_HISTORY,
            sample_count=len(samples),
            reasoning=f"Computed from {len(samples)} historical orders",
            history_samples=samples,
        )

    def _from_raw_quantities(self, patterns: Iterable[Pattern]) -> Optional[RatioResolution]:
        ratios = []
        for p in patterns:
            if p.quantity and p.order_quantity and p.order_quantity > 0:
                value = p.quantity / p.order_quantity
                if _usable(value):
                    ratios.append(value)
        if not ratios:
            return None
        return RatioResolution(
            ratio=_mean(ratios),
            source=RatioSource.RAW_QUANTITIES,
            sample_count=len(ratios),
            reasoning=f"From raw quantities of {len(ratios)} patterns",
        )
