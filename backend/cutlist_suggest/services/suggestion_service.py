"""Read side of the engine: product, size, profile and combination suggestions.

Every query is advisory. A store failure is logged and answered with an
empty list so the order-entry screen keeps working; only ``get_statistics``
lets the failure through. Results are cached under the
``suggestion-patterns`` tag, which the learning side invalidates.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from cutlist_suggest.cache import (
    PREFIX_COMBINATIONS,
    PREFIX_PRODUCTS,
    PREFIX_PROFILES,
    PREFIX_SIZES,
    TAG_SUGGESTION_PATTERNS,
    TaggedResultCache,
)
from cutlist_suggest.config import Settings
from cutlist_suggest.domain.normalization import normalize, normalize_profile
from cutlist_suggest.domain.scoring import (
    confidence_score,
    predict_quantity,
    round_half_up,
    string_similarity,
)
from cutlist_suggest.logging_config import get_logger
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.schemas.pattern import Pattern
from cutlist_suggest.schemas.suggestion import (
    AlternativeSuggestion,
    CombinationProfile,
    CombinationSuggestion,
    ContextInfo,
    ProfileSuggestion,
    SmartSuggestion,
    SuggestionStatistics,
    SuggestionType,
)

logger = get_logger(__name__)

T = TypeVar("T")

MAX_COMBINATION_PROFILES = 5


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _group_by(patterns: Sequence[Pattern], key: Callable[[Pattern], str]) -> Dict[str, List[Pattern]]:
    groups: Dict[str, List[Pattern]] = {}
    for p in patterns:
        groups.setdefault(key(p), []).append(p)
    return groups


def _detached(items: Sequence[T]) -> List[T]:
    """Deep copies, so callers never share objects with the cache."""
    return [item.model_copy(deep=True) for item in items]


def _by_confidence_then_frequency(item: Any) -> tuple:
    return item.confidence, item.frequency


class SuggestionService:
    def __init__(
        self,
        pattern_repo: PatternRepository,
        cache: Optional[TaggedResultCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.patterns = pattern_repo
        self.cache = cache
        self.settings = settings or Settings()

    # ── queries ──────────────────────────────────────────────────────

    def get_product_suggestions(self, query: str, limit: int = 10) -> List[SmartSuggestion]:
        """Products whose name contains ``query``, ranked by mean stored confidence."""
        key = f"{PREFIX_PRODUCTS}{normalize(query)}:{limit}"
        return self._cached(key, lambda: self._product_suggestions(query, limit), "product")

    def get_size_suggestions(self, product_name: str, query: str = "", limit: int = 10) -> List[SmartSuggestion]:
        key = f"{PREFIX_SIZES}{normalize(product_name)}:{normalize(query)}:{limit}"
        return self._cached(key, lambda: self._size_suggestions(product_name, query, limit), "size")

    def get_profile_suggestions(
        self,
        product_name: str,
        size: str,
        query: str = "",
        limit: int = 10,
        order_quantity: float = 0,
        color: Optional[str] = None,
        version: Optional[str] = None,
    ) -> List[ProfileSuggestion]:
        """Scored profile/measurement suggestions for one product and size.

        Each suggestion carries a predicted quantity for ``order_quantity``
        (historical average when it is 0) and up to ``max_alternatives``
        similar profiles of the same context.
        """
        key = (
            f"{PREFIX_PROFILES}{normalize(product_name)}|{normalize(size)}:{normalize(query)}:"
            f"{limit}:{order_quantity}:{normalize(color)}:{normalize(version)}"
        )
        context = ContextInfo(product_name=product_name, size=size, color=color, version=version)
        return self._cached(
            key,
            lambda: self._profile_suggestions(context, query, limit, order_quantity),
            "profile",
        )

    def get_combination_suggestions(
        self, product_name: str, size: str, limit: int = 5
    ) -> List[CombinationSuggestion]:
        """A recommended profile set for the context: one measurement per profile."""
        key = f"{PREFIX_COMBINATIONS}{normalize(product_name)}|{normalize(size)}:{limit}"
        return self._cached(
            key,
            lambda: self._combination_suggestions(product_name, size, limit),
            "combination",
        )

    def get_statistics(self) -> SuggestionStatistics:
        """Store statistics plus unique products and recent activity."""
        try:
            stats = self.patterns.get_statistics()
            unique_products = self.patterns.get_unique_products_count()
            recent = self.patterns.get_recent_patterns(self.settings.recent_activity_days)
        except Exception as exc:
            logger.error("statistics_failed", error=str(exc))
            raise

        return SuggestionStatistics(
            total_patterns=stats.total_patterns,
            high_confidence=stats.high_confidence,
            medium_confidence=stats.medium_confidence,
            low_confidence=stats.low_confidence,
            average_confidence=round(stats.average_confidence, 2),
            unique_products=unique_products,
            recent_activity=len(recent),
        )

    # ── builders ─────────────────────────────────────────────────────

    def _product_suggestions(self, query: str, limit: int) -> List[SmartSuggestion]:
        patterns = self.patterns.search_by_product(query, limit * 2)
        suggestions = []
        for product, group in _group_by(patterns, lambda p: p.product_name).items():
            frequency = sum(p.frequency for p in group)
            suggestions.append(SmartSuggestion(
                type=SuggestionType.PRODUCT,
                value=product,
                confidence=round(_mean([p.confidence for p in group]), 2),
                frequency=frequency,
                reasoning=f"Used {frequency} times across {len(group)} patterns",
                metadata={
                    "pattern_count": len(group),
                    "unique_sizes": len({p.size for p in group}),
                },
            ))
        suggestions.sort(key=_by_confidence_then_frequency, reverse=True)
        return suggestions[:limit]

    def _size_suggestions(self, product_name: str, query: str, limit: int) -> List[SmartSuggestion]:
        needle = normalize(query)
        sizes = [s for s in self.patterns.get_unique_sizes_for_product(product_name) if needle in s]

        suggestions = []
        for size in sizes:
            group = self.patterns.find_by_product_and_size(product_name, size)
            if not group:
                continue
            frequency = sum(p.frequency for p in group)
            suggestions.append(SmartSuggestion(
                type=SuggestionType.SIZE,
                value=size,
                confidence=round(_mean([p.confidence for p in group]), 2),
                frequency=frequency,
                reasoning=f"Used {frequency} times with {len(group)} profiles",
                metadata={
                    "pattern_count": len(group),
                    "unique_profiles": len({p.profile for p in group}),
                },
            ))
        suggestions.sort(key=_by_confidence_then_frequency, reverse=True)
        return suggestions[:limit]

    def _profile_suggestions(
        self,
        context: ContextInfo,
        query: str,
        limit: int,
        order_quantity: float,
    ) -> List[ProfileSuggestion]:
        patterns = self.patterns.find_by_product_and_size(context.product_name, context.size)
        needle = normalize_profile(query)
        if needle:
            patterns = [p for p in patterns if needle in normalize_profile(p.profile)]
        if not patterns:
            return []

        max_frequency = max(max(p.frequency for p in patterns), 1)
        now = datetime.now(timezone.utc)
        scored = []
        for p in patterns:
            score = confidence_score(
                p, context, max_frequency, now=now,
                half_life_days=self.settings.recency_half_life_days,
            )
            scored.append((p, score, predict_quantity(p, order_quantity, score.total)))

        suggestions = []
        for pattern, score, prediction in scored:
            suggestions.append(ProfileSuggestion(
                profile=pattern.profile,
                measurement=pattern.measurement,
                suggested_quantity=prediction.predicted,
                min_quantity=prediction.min,
                max_quantity=prediction.max,
                confidence=score.total,
                frequency=pattern.frequency,
                reasoning=f"{score.breakdown}. {prediction.reasoning}",
                alternatives=self._alternatives(pattern, patterns),
            ))
        suggestions.sort(key=_by_confidence_then_frequency, reverse=True)
        return suggestions[:limit]

    def _alternatives(self, pattern: Pattern, patterns: Sequence[Pattern]) -> List[AlternativeSuggestion]:
        """Similar profiles of the same context, reported with their stored figures."""
        threshold = self.settings.alternative_similarity_threshold
        found = []
        for other in patterns:
            if other.id == pattern.id:
                continue
            similarity = string_similarity(pattern.profile, other.profile)
            if similarity <= threshold:
                continue
            reason = (
                "Same profile, different measurement"
                if similarity >= 1.0
                else f"Similar profile ({similarity:.0%} match)"
            )
            found.append(AlternativeSuggestion(
                profile=other.profile,
                measurement=other.measurement,
                quantity=round_half_up(other.average_quantity),
                confidence=round(other.confidence, 2),
                similarity=round(similarity, 3),
                reason=reason,
            ))
        found.sort(key=lambda a: (a.similarity, a.confidence), reverse=True)
        return found[: self.settings.max_alternatives]

    def _combination_suggestions(
        self, product_name: str, size: str, limit: int
    ) -> List[CombinationSuggestion]:
        patterns = self.patterns.find_by_product_and_size(product_name, size)
        if not patterns:
            return []

        groups = list(_group_by(patterns, lambda p: normalize_profile(p.profile)).values())
        groups.sort(
            key=lambda g: (_mean([p.confidence for p in g]), sum(p.frequency for p in g)),
            reverse=True,
        )
        groups = groups[: min(MAX_COMBINATION_PROFILES, limit * 2)]

        profiles = []
        for group in groups:
            representative = max(group, key=lambda p: p.frequency)
            profiles.append(CombinationProfile(
                profile=representative.profile,
                measurement=representative.measurement,
                ratio=representative.effective_ratio,
                confidence=round(_mean([p.confidence for p in group]), 2),
            ))

        combination = CombinationSuggestion(
            product_name=normalize(product_name),
            size=normalize(size),
            profiles=profiles,
            total_confidence=round(_mean([p.confidence for p in profiles]), 2),
            reasoning=f"Recommended set of {len(profiles)} profiles from {len(patterns)} patterns",
        )
        return [combination][:limit]

    # ── cache plumbing ───────────────────────────────────────────────

    def _cached(self, key: str, build: Callable[[], List[T]], kind: str) -> List[T]:
        hit = self._cache_get(key)
        if hit is not None:
            return _detached(hit)
        try:
            result = build()
        except Exception as exc:
            logger.error("suggestion_query_failed", kind=kind, cache_key=key, error=str(exc))
            return []
        self._cache_set(key, _detached(result))
        return result

    def _cache_get(self, key: str) -> Optional[List[Any]]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(key)
        except Exception as exc:
            logger.warning("cache_read_failed", cache_key=key, error=str(exc))
            return None

    def _cache_set(self, key: str, value: List[Any]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(
                key, value,
                tags=(TAG_SUGGESTION_PATTERNS,),
                ttl=self.settings.cache_ttl_seconds,
            )
        except Exception as exc:
            logger.warning("cache_write_failed", cache_key=key, error=str(exc))
