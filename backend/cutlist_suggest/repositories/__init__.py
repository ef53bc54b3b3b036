"""Data access repositories."""

from cutlist_suggest.repositories.base import BaseRepository
from cutlist_suggest.repositories.order_history_repo import OrderHistoryRepository
from cutlist_suggest.repositories.pattern_repo import PatternRepository

__all__ = [
    "BaseRepository",
    "PatternRepository",
    "OrderHistoryRepository",
]
