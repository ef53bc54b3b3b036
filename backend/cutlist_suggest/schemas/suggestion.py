"""Suggestion result schemas and scoring value objects."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SuggestionType(str, Enum):
    PRODUCT = "product"
    SIZE = "size"
    PROFILE = "profile"
    COMBINATION = "combination"


class RatioSource(str, Enum):
    """Which step of the smart-apply fallback chain produced a ratio."""

    RATIO_HISTORY = "ratio_history"  # concatenated ratio histories
    AVERAGE_RATIO = "average_ratio"  # stored averages (1.0 placeholders excluded)
    ORDER_HISTORY = "order_history"  # raw historical cutting-list items
    RAW_QUANTITIES = "raw_quantities"  # first-observation quantity / order_quantity
    FALLBACK = "fallback"  # no data: 1:1


# ── scoring value objects ────────────────────────────────────────────────


class ContextInfo(BaseModel):
    """The query context a pattern is scored against."""

    product_name: str
    size: str
    color: Optional[str] = None
    version: Optional[str] = None


class ConfidenceScore(BaseModel):
    total: float  # 0–100
    frequency: float  # 0–40
    recency: float  # 0–30
    context_match: float  # 0–30
    breakdown: str


class QuantityPrediction(BaseModel):
    predicted: int
    confidence: float
    min: int
    max: int
    reasoning: str


# ── query results ────────────────────────────────────────────────────────


class SmartSuggestion(BaseModel):
    """Product or size suggestion."""

    type: SuggestionType
    value: str
    confidence: float
    frequency: int
    reasoning: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AlternativeSuggestion(BaseModel):
    profile: str
    measurement: str
    quantity: int
    confidence: float
    similarity: float
    reason: str


class ProfileSuggestion(BaseModel):
    profile: str
    measurement: str
    suggested_quantity: int
    min_quantity: int
    max_quantity: int
    confidence: float
    frequency: int
    reasoning: str
    alternatives: List[AlternativeSuggestion] = Field(default_factory=list)


class CombinationProfile(BaseModel):
    profile: str
    measurement: str
    ratio: Optional[float]
    confidence: float


class CombinationSuggestion(BaseModel):
    product_name: str
    size: str
    profiles: List[CombinationProfile]
    total_confidence: float
    reasoning: str


# ── smart apply ──────────────────────────────────────────────────────────


class SmartApplyProfile(BaseModel):
    profile: str
    measurement: str
    quantity: int
    confidence: float
    ratio: float
    ratio_source: RatioSource
    pattern_count: int
    reasoning: str


class SmartApplyResult(BaseModel):
    profiles: List[SmartApplyProfile] = Field(default_factory=list)
    total_confidence: float = 0.0
    reasoning: str

    @classmethod
    def empty(cls, reasoning: str) -> "SmartApplyResult":
        return cls(profiles=[], total_confidence=0.0, reasoning=reasoning)


# ── maintenance / statistics ─────────────────────────────────────────────


class SuggestionStatistics(BaseModel):
    total_patterns: int
    high_confidence: int
    medium_confidence: int
    low_confidence: int
    average_confidence: float
    unique_products: int
    recent_activity: int


class LearningSummary(BaseModel):
    """Outcome of learning from a whole cutting list."""

    learned: int = 0
    rejected: int = 0  # failed validation, dropped
    failed: int = 0  # store error, rolled back
