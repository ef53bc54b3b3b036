"""Orchestration services."""

from cutlist_suggest.services.learning_service import LearningService
from cutlist_suggest.services.smart_apply_service import SmartApplyService
from cutlist_suggest.services.suggestion_service import SuggestionService

__all__ = [
    "LearningService",
    "SmartApplyService",
    "SuggestionService",
]
