"""One-click quantity prediction for every profile of a product and size.

Given an order quantity, smart apply predicts how many pieces of each
learned profile/measurement to cut:

1. fetch the context's patterns (display order)
2. group rows sharing a normalized (profile, measurement)
3. pick a representative per group
4. resolve a combined ratio through the fallback chain
5. quantity = round(order quantity x ratio)
6. group confidence = mean stored confidence
7. keep first-observation order
8. overall confidence = mean of group confidences

It never raises: suggestions are advisory and must not block order entry.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from cutlist_suggest.domain.normalization import normalize
from cutlist_suggest.domain.scoring import round_half_up
from cutlist_suggest.engines.pattern_selector import (
    PatternGroup,
    group_by_profile_measurement,
    pick_representative,
)
from cutlist_suggest.engines.ratio_resolver import RatioResolution, RatioResolver
from cutlist_suggest.logging_config import get_logger
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.schemas.pattern import PatternUpdate
from cutlist_suggest.schemas.suggestion import RatioSource, SmartApplyProfile, SmartApplyResult

logger = get_logger(__name__)

SYSTEM_ERROR_REASONING = "Smart suggestion failed due to system error"


class SmartApplyService:
    def __init__(
        self,
        db: Session,
        pattern_repo: PatternRepository,
        ratio_resolver: RatioResolver,
    ):
        self.db = db
        self.patterns = pattern_repo
        self.resolver = ratio_resolver

    def apply_smart_suggestion(
        self,
        product_name: str,
        size: str,
        order_quantity: float,
        requested_profile: Optional[str] = None,
    ) -> SmartApplyResult:
        try:
            return self._apply(product_name, size, order_quantity, requested_profile)
        except Exception as exc:
            logger.exception(
                "smart_apply_failed",
                product_name=product_name,
                size=size,
                order_quantity=order_quantity,
                error=str(exc),
            )
            return SmartApplyResult.empty(SYSTEM_ERROR_REASONING)

    def _apply(
        self,
        product_name: str,
        size: str,
        order_quantity: float,
        requested_profile: Optional[str],
    ) -> SmartApplyResult:
        if order_quantity is None or order_quantity <= 0:
            return SmartApplyResult.empty("Order quantity must be positive to predict cut quantities")

        patterns = self.patterns.find_by_product_and_size(product_name, size)
        if not patterns:
            return SmartApplyResult.empty(
                f"No learned patterns for {normalize(product_name)} {normalize(size)}"
            )

        groups = group_by_profile_measurement(patterns)
        profiles: List[SmartApplyProfile] = []
        for group in groups:
            representative = pick_representative(group.patterns, requested_profile)
            resolution = self.resolver.resolve(group, product_name, size, representative)
            if resolution.source == RatioSource.ORDER_HISTORY:
                self._write_back(group, resolution)

            confidence = round(group.mean_confidence, 2)
            profiles.append(SmartApplyProfile(
                profile=representative.profile,
                measurement=representative.measurement,
                quantity=round_half_up(order_quantity * resolution.ratio),
                confidence=confidence,
                ratio=round(resolution.ratio, 4),
                ratio_source=resolution.source,
                pattern_count=len(group.patterns),
                reasoning=resolution.reasoning,
            ))

        total_confidence = round(sum(p.confidence for p in profiles) / len(profiles), 2)
        logger.info(
            "smart_apply_completed",
            product_name=normalize(product_name),
            size=normalize(size),
            order_quantity=order_quantity,
            patterns=len(patterns),
            profiles=len(profiles),
            total_confidence=total_confidence,
        )
        return SmartApplyResult(
            profiles=profiles,
            total_confidence=total_confidence,
            reasoning=self._summary(len(patterns), profiles),
        )

    def _write_back(self, group: PatternGroup, resolution: RatioResolution) -> None:
        """Store order-history ratios on the group's first pattern so later calls use its history."""
        target = group.first
        try:
            self.patterns.update(target.id, PatternUpdate(
                ratio_history=resolution.history_samples,
                average_ratio=resolution.ratio,
            ))
            self.db.commit()
            logger.info(
                "ratio_history_backfilled",
                pattern_key=target.pattern_key,
                samples=len(resolution.history_samples),
                average_ratio=round(resolution.ratio, 4),
            )
        except Exception as exc:
            self.db.rollback()
            logger.warning("ratio_history_backfill_failed", pattern_key=target.pattern_key, error=str(exc))

    @staticmethod
    def _summary(pattern_count: int, profiles: List[SmartApplyProfile]) -> str:
        sources = []
        for p in profiles:
            if p.ratio_source.value not in sources:
                sources.append(p.ratio_source.value)
        text = (
            f"Based on {pattern_count} learned patterns across {len(profiles)} profiles "
            f"(ratio sources: {', '.join(sources)})"
        )
        fallbacks = sum(1 for p in profiles if p.ratio_source == RatioSource.FALLBACK)
        if fallbacks:
            text += f"; {fallbacks} profile(s) had no ratio data and use the 1:1 fallback"
        return text
