"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database so tests are fully isolated.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from cutlist_suggest.cache import TaggedResultCache
from cutlist_suggest.config import Settings
from cutlist_suggest.database import Base
from cutlist_suggest.domain.normalization import (
    create_context_key,
    create_pattern_key,
    normalize,
    normalize_profile,
)
from cutlist_suggest.engines.ratio_resolver import RatioResolver
from cutlist_suggest.models.cutting_list import CuttingListItemModel, CuttingListModel
from cutlist_suggest.repositories.order_history_repo import OrderHistoryRepository
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.schemas.pattern import PatternCreate, PatternMetadata, RatioSample
from cutlist_suggest.services.learning_service import LearningService
from cutlist_suggest.services.smart_apply_service import SmartApplyService
from cutlist_suggest.services.suggestion_service import SuggestionService

import cutlist_suggest.models  # noqa: F401


@pytest.fixture()
def db_engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(db_engine) -> Session:
    session = sessionmaker(bind=db_engine)()
    yield session
    session.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(database_url="sqlite:///:memory:")


# ── Wiring ───────────────────────────────────────────────────────────────

@pytest.fixture()
def pattern_repo(db: Session) -> PatternRepository:
    return PatternRepository(db)


@pytest.fixture()
def order_history_repo(db: Session) -> OrderHistoryRepository:
    return OrderHistoryRepository(db)


@pytest.fixture()
def cache() -> TaggedResultCache:
    return TaggedResultCache(ttl_seconds=300)


@pytest.fixture()
def learning_service(db, pattern_repo, cache, settings) -> LearningService:
    return LearningService(db, pattern_repo, cache, settings)


@pytest.fixture()
def suggestion_service(pattern_repo, cache, settings) -> SuggestionService:
    return SuggestionService(pattern_repo, cache, settings)


@pytest.fixture()
def smart_apply_service(db, pattern_repo, order_history_repo) -> SmartApplyService:
    return SmartApplyService(db, pattern_repo, RatioResolver(order_history_repo))


# ── Convenience fixtures ─────────────────────────────────────────────────

@pytest.fixture()
def add_pattern(db: Session, pattern_repo: PatternRepository):
    """Insert a pattern directly, bypassing learning.

    Any field can be overridden; ``ratios`` builds a ratio history and its
    average, ``days_ago`` back-dates ``last_used``.
    """

    def _add(
        product_name="DOOR",
        size="100x200",
        profile="FRAME",
        measurement="990mm",
        ratios=(),
        days_ago=0,
        original_index=None,
        **overrides,
    ):
        history = [RatioSample(order_qty=10, profile_qty=10 * r, ratio=r) for r in ratios]
        context_key = create_context_key(product_name, size)
        fields = dict(
            context_key=context_key,
            pattern_key=create_pattern_key(product_name, size, profile, measurement),
            product_name=normalize(product_name),
            size=normalize(size),
            profile=normalize_profile(profile),
            measurement=normalize(measurement),
            frequency=max(1, len(history)),
            confidence=50.0,
            last_used=datetime.now(timezone.utc) - timedelta(days=days_ago),
            average_ratio=(sum(ratios) / len(ratios)) if ratios else None,
            contexts=[context_key],
            variations=[normalize(measurement)],
            ratio_history=history,
            metadata=PatternMetadata(original_index=original_index),
        )
        fields.update(overrides)
        pattern = pattern_repo.create(PatternCreate(**fields))
        db.commit()
        return pattern

    return _add


@pytest.fixture()
def add_cutting_list(db: Session):
    """Store a historical cutting list: ``items`` are
    ``(work_order_id, size, profile_type, length, quantity, order_quantity)``."""

    def _add(product_name, items, title="Week 12"):
        cutting_list = CuttingListModel(
            title=title,
            week_number=12,
            sections=[{"product_name": product_name}],
        )
        for work_order_id, size, profile_type, length, quantity, order_quantity in items:
            cutting_list.items.append(CuttingListItemModel(
                work_order_id=work_order_id,
                size=size,
                profile_type=profile_type,
                length=length,
                quantity=quantity,
                order_quantity=order_quantity,
            ))
        db.add(cutting_list)
        db.commit()
        db.refresh(cutting_list)
        return cutting_list

    return _add
