"""SQLAlchemy ORM models — imported here so Base.metadata sees them."""

from cutlist_suggest.models.cutting_list import CuttingListItemModel, CuttingListModel
from cutlist_suggest.models.suggestion_pattern import SuggestionPatternModel

__all__ = [
    "SuggestionPatternModel",
    "CuttingListModel",
    "CuttingListItemModel",
]
