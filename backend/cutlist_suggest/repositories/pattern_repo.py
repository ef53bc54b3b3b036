"""Suggestion pattern repository — the engine's pattern store.

Rows never leave this module: every read is validated into a ``Pattern``
schema, every write takes a ``PatternCreate`` / ``PatternUpdate``.
Failures are logged with context and re-raised so the calling service can
roll back.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import distinct, func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cutlist_suggest.domain.normalization import create_context_key, normalize
from cutlist_suggest.logging_config import get_logger
from cutlist_suggest.models.suggestion_pattern import SuggestionPatternModel
from cutlist_suggest.repositories.base import BaseRepository
from cutlist_suggest.schemas.pattern import (
    Pattern,
    PatternCreate,
    PatternStatistics,
    PatternUpdate,
)

logger = get_logger(__name__)

HIGH_CONFIDENCE = 70.0
MEDIUM_CONFIDENCE = 40.0

_UNORDERED = float("inf")


def to_pattern(row: SuggestionPatternModel) -> Pattern:
    """Validate an ORM row into the ``Pattern`` schema."""
    return Pattern.model_validate({
        "id": row.id,
        "context_key": row.context_key,
        "pattern_key": row.pattern_key,
        "product_name": row.product_name,
        "size": row.size,
        "profile": row.profile,
        "measurement": row.measurement,
        "quantity": row.quantity,
        "order_quantity": row.order_quantity,
        "ratio": row.ratio,
        "frequency": row.frequency,
        "confidence": row.confidence,
        "last_used": row.last_used,
        "average_quantity": row.average_quantity,
        "average_ratio": row.average_ratio,
        "contexts": row.contexts,
        "variations": row.variations,
        "ratio_history": row.ratio_history,
        "metadata": row.pattern_metadata,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    })


def _display_order(pattern: Pattern) -> float:
    index = pattern.metadata.original_index
    return index if index is not None else _UNORDERED


def _like_literal(text: str) -> str:
    """Escape LIKE wildcards so ``text`` matches only itself."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PatternRepository(BaseRepository[SuggestionPatternModel]):
    def __init__(self, db: Session):
        super().__init__(db, SuggestionPatternModel)

    # ── writes ───────────────────────────────────────────────────────

    def create(self, data: PatternCreate) -> Pattern:
        """Insert a new pattern (caller must commit)."""
        try:
            row = SuggestionPatternModel(
                context_key=data.context_key,
                pattern_key=data.pattern_key,
                product_name=data.product_name,
                size=data.size,
                profile=data.profile,
                measurement=data.measurement,
                quantity=data.quantity,
                order_quantity=data.order_quantity,
                ratio=data.ratio,
                frequency=data.frequency,
                confidence=data.confidence,
                last_used=data.last_used,
                average_quantity=data.average_quantity,
                average_ratio=data.average_ratio,
                contexts=list(data.contexts),
                variations=list(data.variations),
                ratio_history=[s.model_dump() for s in data.ratio_history],
                pattern_metadata=data.metadata.model_dump(exclude_none=True),
            )
            self.add_row(row)
            return to_pattern(row)
        except SQLAlchemyError as exc:
            logger.error("pattern_create_failed", pattern_key=data.pattern_key, error=str(exc))
            raise

    def update(self, pattern_id: int, data: PatternUpdate) -> Pattern:
        """Apply the non-``None`` fields of ``data`` (caller must commit)."""
        try:
            row = self.get_row(pattern_id)
            if row is None:
                raise LookupError(f"Pattern {pattern_id} not found")

            if data.frequency is not None:
                row.frequency = data.frequency
            if data.last_used is not None:
                row.last_used = data.last_used
            if data.average_ratio is not None:
                row.average_ratio = data.average_ratio
            if data.ratio_history is not None:
                row.ratio_history = [s.model_dump() for s in data.ratio_history]
            if data.confidence is not None:
                row.confidence = data.confidence
            row.updated_at = datetime.now(timezone.utc)

            self.db.flush()
            return to_pattern(row)
        except (SQLAlchemyError, LookupError) as exc:
            logger.error(
                "pattern_update_failed",
                pattern_id=pattern_id,
                fields=sorted(data.model_dump(exclude_none=True)),
                error=str(exc),
            )
            raise

    def update_confidence(self, pattern_id: int, confidence: float) -> Pattern:
        return self.update(pattern_id, PatternUpdate(confidence=confidence))

    def bulk_update_confidence(self, updates: Sequence[Tuple[int, float]]) -> int:
        """Write many ``(pattern_id, confidence)`` pairs at once (caller must commit)."""
        if not updates:
            return 0
        try:
            self.db.execute(
                update(SuggestionPatternModel),
                [{"id": pid, "confidence": conf} for pid, conf in updates],
            )
            self.db.flush()
            logger.info("pattern_confidence_bulk_updated", count=len(updates))
            return len(updates)
        except SQLAlchemyError as exc:
            logger.error("pattern_confidence_bulk_update_failed", count=len(updates), error=str(exc))
            raise

    def delete_old_patterns(self, retention_days: int = 180, frequency_floor: int = 5) -> int:
        """Delete patterns unused for ``retention_days`` AND seen fewer than ``frequency_floor`` times.

        Frequent patterns survive regardless of age. Returns the deleted count
        (caller must commit).
        """
        cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
        try:
            count = (
                self._query()
                .filter(self.model.last_used < cutoff)
                .filter(self.model.frequency < frequency_floor)
                .delete(synchronize_session=False)
            )
            self.db.flush()
            logger.info(
                "old_patterns_deleted",
                count=count,
                retention_days=retention_days,
                frequency_floor=frequency_floor,
            )
            return count
        except SQLAlchemyError as exc:
            logger.error("old_patterns_delete_failed", retention_days=retention_days, error=str(exc))
            raise

    # ── lookups ──────────────────────────────────────────────────────

    def find_by_pattern_key(self, pattern_key: str, *, for_update: bool = False) -> Optional[Pattern]:
        """Fetch one pattern by its unique key.

        ``for_update`` takes a row lock (``SELECT ... FOR UPDATE``) so a
        read-modify-write of frequency/history is atomic on databases that
        support it.
        """
        try:
            q = self._query().filter(self.model.pattern_key == pattern_key)
            if for_update:
                q = q.with_for_update()
            row = q.first()
            return to_pattern(row) if row else None
        except SQLAlchemyError as exc:
            logger.error("pattern_lookup_failed", pattern_key=pattern_key, error=str(exc))
            raise

    def find_by_context_key(self, context_key: str) -> List[Pattern]:
        """All patterns of one ``PRODUCT|SIZE`` context in display order.

        Display order is ``metadata.original_index`` (position inside the
        source item), ties and unindexed rows falling back to creation order.
        """
        try:
            rows = (
                self._query()
                .filter(self.model.context_key == context_key)
                .order_by(self.model.created_at, self.model.id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("patterns_by_context_failed", context_key=context_key, error=str(exc))
            raise
        patterns = [to_pattern(r) for r in rows]
        return sorted(patterns, key=_display_order)

    def find_by_product_and_size(self, product_name: str, size: str) -> List[Pattern]:
        context_key = create_context_key(product_name, size)
        logger.debug(
            "patterns_by_product_and_size",
            product_name=product_name,
            size=size,
            context_key=context_key,
        )
        return self.find_by_context_key(context_key)

    def list_all(self) -> List[Pattern]:
        return [to_pattern(r) for r in self.get_rows()]

    def search_by_product(self, query: str, limit: int = 20) -> List[Pattern]:
        """Patterns whose product name contains ``query``, best first."""
        needle = normalize(query)
        try:
            q = self._query()
            if needle:
                q = q.filter(
                    self.model.product_name.ilike(f"%{_like_literal(needle)}%", escape="\\")
                )
            rows = (
                q.order_by(
                    self.model.confidence.desc(),
                    self.model.frequency.desc(),
                    self.model.id,
                )
                .limit(limit)
                .all()
            )
            return [to_pattern(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.error("patterns_search_failed", query=query, limit=limit, error=str(exc))
            raise

    def get_unique_sizes_for_product(self, product_name: str) -> List[str]:
        """Distinct sizes recorded for a product, in first-seen order."""
        try:
            rows = (
                self.db.query(self.model.size)
                .filter(self.model.product_name == normalize(product_name))
                .group_by(self.model.size)
                .order_by(func.min(self.model.id))
                .all()
            )
            return [r[0] for r in rows]
        except SQLAlchemyError as exc:
            logger.error("unique_sizes_failed", product_name=product_name, error=str(exc))
            raise

    def get_unique_products_count(self) -> int:
        try:
            return self.db.query(func.count(distinct(self.model.product_name))).scalar() or 0
        except SQLAlchemyError as exc:
            logger.error("unique_products_count_failed", error=str(exc))
            raise

    def get_most_frequent_patterns(self, limit: int = 10) -> List[Pattern]:
        try:
            rows = (
                self._query()
                .order_by(self.model.frequency.desc(), self.model.id)
                .limit(limit)
                .all()
            )
            return [to_pattern(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.error("most_frequent_patterns_failed", limit=limit, error=str(exc))
            raise

    def get_recent_patterns(self, days: int = 30) -> List[Pattern]:
        """Patterns used within the last ``days`` days, most recent first."""
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        try:
            rows = (
                self._query()
                .filter(self.model.last_used >= cutoff)
                .order_by(self.model.last_used.desc())
                .all()
            )
            return [to_pattern(r) for r in rows]
        except SQLAlchemyError as exc:
            logger.error("recent_patterns_failed", days=days, error=str(exc))
            raise

    # ── analytics ────────────────────────────────────────────────────

    def get_statistics(self) -> PatternStatistics:
        """Counts by confidence band plus the overall average confidence."""
        try:
            total = self.count()
            high = self._query().filter(self.model.confidence >= HIGH_CONFIDENCE).count()
            medium = (
                self._query()
                .filter(self.model.confidence >= MEDIUM_CONFIDENCE)
                .filter(self.model.confidence < HIGH_CONFIDENCE)
                .count()
            )
            low = self._query().filter(self.model.confidence < MEDIUM_CONFIDENCE).count()
            avg = self.db.query(func.avg(self.model.confidence)).scalar()
        except SQLAlchemyError as exc:
            logger.error("pattern_statistics_failed", error=str(exc))
            raise

        return PatternStatistics(
            total_patterns=total,
            high_confidence=high,
            medium_confidence=medium,
            low_confidence=low,
            average_confidence=float(avg or 0.0),
            most_frequent=self.get_most_frequent_patterns(10),
        )
