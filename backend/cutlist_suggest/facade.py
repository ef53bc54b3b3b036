"""Suggestion facade — single entry point for callers of the engine.

Controllers, the batch CLI and tests use this instead of wiring
repositories and services by hand. If the internal wiring changes only this
file needs updating.

Usage::

    facade = SuggestionFacade()          # uses Settings() from .env
    facade.learn_from_pattern({"product_name": "DOOR", "size": "100x200",
                               "profile": "FRAME", "measurement": "990mm",
                               "quantity": 4, "order_quantity": 2})
    result = facade.apply_smart_suggestion("DOOR", "100x200", 10)
    facade.close()
"""

from typing import Any, List, Mapping, Optional, Union

from sqlalchemy.orm import Session

from cutlist_suggest.cache import TaggedResultCache
from cutlist_suggest.config import Settings
from cutlist_suggest.database import build_engine, build_session_factory, init_db
from cutlist_suggest.engines.ratio_resolver import RatioResolver
from cutlist_suggest.repositories.order_history_repo import OrderHistoryRepository
from cutlist_suggest.repositories.pattern_repo import PatternRepository
from cutlist_suggest.schemas.cutting_list import CuttingListPayload
from cutlist_suggest.schemas.pattern import Pattern, PatternObservation
from cutlist_suggest.schemas.suggestion import (
    CombinationSuggestion,
    LearningSummary,
    ProfileSuggestion,
    SmartApplyResult,
    SmartSuggestion,
    SuggestionStatistics,
)
from cutlist_suggest.services.learning_service import LearningService
from cutlist_suggest.services.smart_apply_service import SmartApplyService
from cutlist_suggest.services.suggestion_service import SuggestionService


class SuggestionFacade:
    """High-level API for the cutting-list suggestion engine.

    Hides all internal wiring (session, repos, cache, services).
    Returns only Pydantic schemas, never ORM models.

    Pass ``session`` to run on a caller-owned session (it is not closed by
    :meth:`close`); otherwise the facade opens its own from
    ``settings.database_url``.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[Session] = None):
        self._settings = settings or Settings()
        self._engine = None
        self._owns_session = session is None
        self._setup_db(session)
        self._setup_repos()
        self._setup_services()

    # ── internal wiring (private) ─────────────────────────────────────

    def _setup_db(self, session: Optional[Session]) -> None:
        if session is not None:
            self._db = session
            return
        s = self._settings
        self._engine = build_engine(s.database_url, echo=s.debug)
        init_db(self._engine)
        self._db = build_session_factory(self._engine)()

    def _setup_repos(self) -> None:
        self._pattern_repo = PatternRepository(self._db)
        self._order_history_repo = OrderHistoryRepository(self._db)
        self._cache = TaggedResultCache(ttl_seconds=self._settings.cache_ttl_seconds)

    def _setup_services(self) -> None:
        s = self._settings
        self._suggestions = SuggestionService(self._pattern_repo, self._cache, s)
        self._learning = LearningService(self._db, self._pattern_repo, self._cache, s)
        self._smart_apply = SmartApplyService(
            self._db,
            self._pattern_repo,
            RatioResolver(self._order_history_repo),
        )

    # ══════════════════════════════════════════════════════════════════
    # SUGGESTION QUERIES
    # ══════════════════════════════════════════════════════════════════

    def get_product_suggestions(self, query: str, limit: int = 10) -> List[SmartSuggestion]:
        return self._suggestions.get_product_suggestions(query, limit)

    def get_size_suggestions(self, product_name: str, query: str = "", limit: int = 10) -> List[SmartSuggestion]:
        return self._suggestions.get_size_suggestions(product_name, query, limit)

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
        return self._suggestions.get_profile_suggestions(
            product_name, size, query, limit,
            order_quantity=order_quantity, color=color, version=version,
        )

    def get_combination_suggestions(
        self, product_name: str, size: str, limit: int = 5
    ) -> List[CombinationSuggestion]:
        return self._suggestions.get_combination_suggestions(product_name, size, limit)

    def apply_smart_suggestion(
        self,
        product_name: str,
        size: str,
        order_quantity: float,
        requested_profile: Optional[str] = None,
    ) -> SmartApplyResult:
        return self._smart_apply.apply_smart_suggestion(
            product_name, size, order_quantity, requested_profile
        )

    # ══════════════════════════════════════════════════════════════════
    # LEARNING
    # ══════════════════════════════════════════════════════════════════

    def learn_from_pattern(
        self, data: Union[PatternObservation, Mapping[str, Any]]
    ) -> Optional[Pattern]:
        return self._learning.learn_from_pattern(data)

    def learn_from_cutting_list(
        self, cutting_list: Union[CuttingListPayload, Mapping[str, Any]]
    ) -> LearningSummary:
        return self._learning.learn_from_cutting_list(cutting_list)

    # ══════════════════════════════════════════════════════════════════
    # MAINTENANCE & STATISTICS
    # ══════════════════════════════════════════════════════════════════

    def get_statistics(self) -> SuggestionStatistics:
        return self._suggestions.get_statistics()

    def cleanup_old_patterns(
        self,
        retention_days: Optional[int] = None,
        frequency_floor: Optional[int] = None,
    ) -> int:
        return self._learning.cleanup_old_patterns(retention_days, frequency_floor)

    def update_confidence(self, pattern_key: str, confidence: float) -> Optional[Pattern]:
        return self._learning.update_confidence(pattern_key, confidence)

    def refresh_confidence_scores(self) -> int:
        return self._learning.refresh_confidence_scores()

    # ── lifecycle ─────────────────────────────────────────────────────

    def close(self) -> None:
        """Close the session (when owned) and dispose of the engine."""
        if self._owns_session:
            self._db.close()
        if self._engine is not None:
            self._engine.dispose()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
