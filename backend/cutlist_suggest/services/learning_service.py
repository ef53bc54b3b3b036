"""Write side of the engine: learning from cutting decisions, plus maintenance.

A bad observation is logged and dropped so one broken line cannot abort a
batch. A store failure rolls the session back and is re-raised because the
caller must know the observation was not persisted.
"""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError
from sqlalchemy.orm import Session

from cutlist_suggest.cache import TAG_SUGGESTION_PATTERNS, TaggedResultCache
from cutlist_suggest.config import Settings
from cutlist_suggest.domain.normalization import (
    create_context_key,
    create_pattern_key,
    normalize,
    normalize_measurement,
    normalize_profile,
)
from cutlist_suggest.domain.scoring import diversity_confidence
from cutlist_suggest.logging_config import get_logger
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.schemas.cutting_list import CuttingListPayload
from cutlist_suggest.schemas.pattern import (
    Pattern,
    PatternCreate,
    PatternMetadata,
    PatternObservation,
    PatternUpdate,
    RatioSample,
)
from cutlist_suggest.schemas.suggestion import LearningSummary

logger = get_logger(__name__)


def _rejection_reason(obs: PatternObservation) -> Optional[str]:
    blanks = [
        name
        for name, value in (
            ("product_name", normalize(obs.product_name)),
            ("size", normalize(obs.size)),
            ("profile", normalize_profile(obs.profile)),
            ("measurement", normalize_measurement(obs.measurement)),
        )
        if not value
    ]
    if blanks:
        return f"blank {', '.join(blanks)}"
    if obs.quantity <= 0:
        return "non-positive quantity"
    if obs.order_quantity <= 0:
        return "non-positive order quantity"
    return None


class LearningService:
    def __init__(
        self,
        db: Session,
        pattern_repo: PatternRepository,
        cache: Optional[TaggedResultCache] = None,
        settings: Optional[Settings] = None,
    ):
        self.db = db
        self.patterns = pattern_repo
        self.cache = cache
        self.settings = settings or Settings()

    # ── learning ─────────────────────────────────────────────────────

    def learn_from_pattern(
        self, data: Union[PatternObservation, Mapping[str, Any]]
    ) -> Optional[Pattern]:
        """Record one cutting decision.

        Returns the stored pattern, or ``None`` when the observation was
        rejected (blank field, non-positive quantity, malformed payload).

        An existing pattern gets ``frequency + 1``, a new ratio sample,
        ``average_ratio`` recomputed over the full history and a fresh
        ``last_used``. Its first-observation ``quantity`` /
        ``order_quantity`` / ``ratio`` are never rewritten.
        """
        if isinstance(data, PatternObservation):
            obs = data
        else:
            try:
                obs = PatternObservation.model_validate(data)
            except ValidationError as exc:
                logger.warning("observation_rejected", reason="malformed payload", error=str(exc))
                return None

        reason = _rejection_reason(obs)
        if reason:
            logger.warning(
                "observation_rejected",
                reason=reason,
                product_name=obs.product_name,
                size=obs.size,
                profile=obs.profile,
                measurement=obs.measurement,
                quantity=obs.quantity,
                order_quantity=obs.order_quantity,
            )
            return None

        context_key = create_context_key(obs.product_name, obs.size)
        pattern_key = create_pattern_key(obs.product_name, obs.size, obs.profile, obs.measurement)
        ratio = obs.quantity / obs.order_quantity
        sample = RatioSample(order_qty=obs.order_quantity, profile_qty=obs.quantity, ratio=ratio)
        seen_at = obs.last_used or datetime.now(timezone.utc)

        try:
            existing = self.patterns.find_by_pattern_key(pattern_key, for_update=True)
            if existing is not None:
                history = existing.ratio_history + [sample]
                pattern = self.patterns.update(existing.id, PatternUpdate(
                    frequency=existing.frequency + 1,
                    last_used=seen_at,
                    ratio_history=history,
                    average_ratio=sum(s.ratio for s in history) / len(history),
                ))
                event = "pattern_reinforced"
            else:
                pattern = self.patterns.create(self._new_pattern(obs, context_key, pattern_key, sample, seen_at))
                event = "pattern_created"
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("pattern_learning_failed", pattern_key=pattern_key, error=str(exc))
            raise

        logger.info(
            event,
            pattern_key=pattern_key,
            frequency=pattern.frequency,
            ratio=round(ratio, 4),
            average_ratio=pattern.average_ratio,
        )
        self._invalidate_cache()
        return pattern

    def _new_pattern(
        self,
        obs: PatternObservation,
        context_key: str,
        pattern_key: str,
        sample: RatioSample,
        seen_at: datetime,
    ) -> PatternCreate:
        measurement = normalize(obs.measurement)
        return PatternCreate(
            context_key=context_key,
            pattern_key=pattern_key,
            product_name=normalize(obs.product_name),
            size=normalize(obs.size),
            profile=normalize_profile(obs.profile),
            measurement=measurement,
            quantity=obs.quantity,
            order_quantity=obs.order_quantity,
            ratio=sample.ratio,
            frequency=1,
            confidence=self.settings.seed_confidence,
            last_used=seen_at,
            average_quantity=float(obs.quantity),
            average_ratio=sample.ratio,
            contexts=[context_key],
            variations=[measurement],
            ratio_history=[sample],
            metadata=PatternMetadata(
                original_index=obs.original_index,
                total_quantity=obs.quantity,
                total_order_quantity=obs.order_quantity,
                average_order_quantity=obs.order_quantity,
                variation_count=1,
            ),
        )

    def learn_from_cutting_list(
        self, cutting_list: Union[CuttingListPayload, Mapping[str, Any]]
    ) -> LearningSummary:
        """Learn every profile line of a cutting list.

        Each line keeps its position inside the item as ``original_index``;
        the list's update time (else creation time) becomes ``last_used``.
        A line whose store write fails is counted and skipped.
        """
        if not isinstance(cutting_list, CuttingListPayload):
            cutting_list = CuttingListPayload.model_validate(cutting_list)

        seen_at = cutting_list.updated_at or cutting_list.created_at
        summary = LearningSummary()
        for section in cutting_list.sections:
            for item in section.items:
                for index, entry in enumerate(item.profiles):
                    obs = PatternObservation(
                        product_name=section.product_name,
                        size=item.size,
                        profile=entry.profile,
                        measurement=entry.measurement,
                        quantity=entry.quantity,
                        order_quantity=item.order_quantity,
                        last_used=seen_at,
                        original_index=index,
                    )
                    try:
                        learned = self.learn_from_pattern(obs)
                    except Exception:
                        summary.failed += 1
                        continue
                    if learned is None:
                        summary.rejected += 1
                    else:
                        summary.learned += 1

        logger.info(
            "cutting_list_learned",
            title=cutting_list.title,
            learned=summary.learned,
            rejected=summary.rejected,
            failed=summary.failed,
        )
        return summary

    # ── maintenance ──────────────────────────────────────────────────

    def update_confidence(self, pattern_key: str, confidence: float) -> Optional[Pattern]:
        """Set a pattern's stored confidence (clamped to 0..100)."""
        value = max(0.0, min(100.0, confidence))
        try:
            existing = self.patterns.find_by_pattern_key(pattern_key)
            if existing is None:
                logger.warning("confidence_update_skipped", pattern_key=pattern_key, reason="not found")
                return None
            pattern = self.patterns.update_confidence(existing.id, value)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("confidence_update_failed", pattern_key=pattern_key, error=str(exc))
            raise

        self._invalidate_cache()
        return pattern

    def refresh_confidence_scores(self) -> int:
        """Recompute every stored confidence from frequency, recency and context diversity."""
        now = datetime.now(timezone.utc)
        try:
            patterns = self.patterns.list_all()
            if not patterns:
                return 0
            max_frequency = max(p.frequency for p in patterns)
            updates = [
                (
                    p.id,
                    diversity_confidence(
                        p, max_frequency, now=now,
                        half_life_days=self.settings.recency_half_life_days,
                    ),
                )
                for p in patterns
            ]
            count = self.patterns.bulk_update_confidence(updates)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("confidence_refresh_failed", error=str(exc))
            raise

        logger.info("confidence_refreshed", count=count, max_frequency=max_frequency)
        self._invalidate_cache()
        return count

    def cleanup_old_patterns(
        self,
        retention_days: Optional[int] = None,
        frequency_floor: Optional[int] = None,
    ) -> int:
        """Delete patterns unused for ``retention_days`` with frequency below ``frequency_floor``."""
        retention_days = self.settings.retention_days if retention_days is None else retention_days
        frequency_floor = self.settings.frequency_floor if frequency_floor is None else frequency_floor
        try:
            count = self.patterns.delete_old_patterns(retention_days, frequency_floor)
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.error("cleanup_failed", retention_days=retention_days, error=str(exc))
            raise

        self._invalidate_cache()
        return count

    # ── helpers ──────────────────────────────────────────────────────

    def _invalidate_cache(self) -> None:
        if self.cache is None:
            return
        try:
            removed = self.cache.invalidate_by_tag(TAG_SUGGESTION_PATTERNS)
            logger.debug("cache_invalidated", tag=TAG_SUGGESTION_PATTERNS, removed=removed)
        except Exception as exc:
            logger.warning("cache_invalidation_failed", tag=TAG_SUGGESTION_PATTERNS, error=str(exc))
