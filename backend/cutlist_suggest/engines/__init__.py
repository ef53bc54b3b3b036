"""Smart-apply building blocks."""

from cutlist_suggest.engines.pattern_selector import (
    PatternGroup,
    group_by_profile_measurement,
    pick_representative,
    profile_match_score,
)
from cutlist_suggest.engines.ratio_resolver import RatioResolution, RatioResolver

__all__ = [
    "PatternGroup",
    "RatioResolution",
    "RatioResolver",
    "group_by_profile_measurement",
    "pick_representative",
    "profile_match_score",
]
