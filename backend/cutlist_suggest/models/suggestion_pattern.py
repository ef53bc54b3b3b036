"""Suggestion pattern ORM model — one row per learned (product, size, profile, measurement)."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, Index, Integer, String
from sqlalchemy.types import JSON

from cutlist_suggest.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SuggestionPatternModel(Base):
    __tablename__ = "suggestion_patterns"

    id = Column(Integer, primary_key=True, autoincrement=True)

    context_key = Column(String, nullable=False, index=True)  # PRODUCT|SIZE
    pattern_key = Column(String, nullable=False, unique=True)  # PRODUCT|SIZE|PROFILE|MEASUREMENT

    product_name = Column(String, nullable=False)
    size = Column(String, nullable=False)
    profile = Column(String, nullable=False)
    measurement = Column(String, nullable=False)

    # First observation; never rewritten by later learning
    quantity = Column(Integer)
    order_quantity = Column(Integer)
    ratio = Column(Float)

    frequency = Column(Integer, nullable=False, default=1)
    confidence = Column(Float, nullable=False, default=0.0)
    last_used = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    average_quantity = Column(Float, nullable=False, default=0.0)
    average_ratio = Column(Float)

    contexts = Column(JSON, nullable=False, default=list)
    variations = Column(JSON, nullable=False, default=list)
    ratio_history = Column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes
    pattern_metadata = Column("metadata", JSON)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        Index("ix_suggestion_patterns_product_size", "product_name", "size"),
        Index("ix_suggestion_patterns_frequency", "frequency"),
        Index("ix_suggestion_patterns_last_used", "last_used"),
    )

    def __repr__(self) -> str:
        return (
            f"<SuggestionPattern key={self.pattern_key} "
            f"frequency={self.frequency} confidence={self.confidence}>"
        )
