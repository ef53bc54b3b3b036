"""Pydantic schemas for patterns, payloads, and suggestion results."""

from cutlist_suggest.schemas.cutting_list import (
    CuttingListEntry,
    CuttingListPayload,
    ProductSection,
    ProfileEntry,
)
from cutlist_suggest.schemas.pattern import (
    Pattern,
    PatternCreate,
    PatternMetadata,
    PatternObservation,
    PatternStatistics,
    PatternUpdate,
    RatioSample,
)
from cutlist_suggest.schemas.suggestion import (
    AlternativeSuggestion,
    CombinationProfile,
    CombinationSuggestion,
    ConfidenceScore,
    ContextInfo,
    LearningSummary,
    ProfileSuggestion,
    QuantityPrediction,
    RatioSource,
    SmartApplyProfile,
    SmartApplyResult,
    SmartSuggestion,
    SuggestionStatistics,
    SuggestionType,
)

__all__ = [
    "Pattern", "PatternCreate", "PatternUpdate", "PatternMetadata",
    "PatternObservation", "PatternStatistics", "RatioSample",
    "CuttingListPayload", "ProductSection", "CuttingListEntry", "ProfileEntry",
    "SuggestionType", "SmartSuggestion", "ProfileSuggestion", "AlternativeSuggestion",
    "CombinationProfile", "CombinationSuggestion",
    "ContextInfo", "ConfidenceScore", "QuantityPrediction",
    "RatioSource", "SmartApplyProfile", "SmartApplyResult",
    "SuggestionStatistics", "LearningSummary",
]
