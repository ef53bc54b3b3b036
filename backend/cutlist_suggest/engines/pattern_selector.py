"""Grouping and representative selection for smart apply.

Several stored rows can share one normalized (profile, measurement) pair,
e.g. rows written before the normalization rules changed. Smart apply works
on groups of such rows and needs one representative per group.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from cutlist_suggest.domain.normalization import normalize_measurement, normalize_profile
from cutlist_suggest.schemas.pattern import Pattern

logger = logging.getLogger(__name__)

EXACT_MATCH = 100
PARTIAL_MATCH = 50
NO_MATCH = 0


@dataclass
class PatternGroup:
    """Patterns sharing a normalized ``(profile, measurement)`` pair, in store order."""

    profile: str
    measurement: str
    patterns: List[Pattern] = field(default_factory=list)

    @property
    def key(self) -> Tuple[str, str]:
        return self.profile, self.measurement

    @property
    def first(self) -> Pattern:
        return self.patterns[0]

    @property
    def mean_confidence(self) -> float:
        if not self.patterns:
            return 0.0
        return sum(p.confidence for p in self.patterns) / len(self.patterns)


def profile_match_score(profile: str, requested_profile: Optional[str]) -> int:
    """How well a stored profile answers the requested one.

    Examples:
        >>> profile_match_score("Frame", "FRAME")
        100
        >>> profile_match_score("FRAME A", "frame")
        50
        >>> profile_match_score("HINGE", "FRAME")
        0
    """
    wanted = normalize_profile(requested_profile)
    actual = normalize_profile(profile)
    if not wanted or not actual:
        return NO_MATCH
    if actual == wanted:
        return EXACT_MATCH
    if wanted in actual or actual in wanted:
        return PARTIAL_MATCH
    return NO_MATCH


def group_by_profile_measurement(patterns: Sequence[Pattern]) -> List[PatternGroup]:
    """Group by normalized ``(profile, measurement)``; groups keep first-seen order."""
    groups: Dict[Tuple[str, str], PatternGroup] = {}
    for pattern in patterns:
        key = (normalize_profile(pattern.profile), normalize_measurement(pattern.measurement))
        group = groups.get(key)
        if group is None:
            group = groups[key] = PatternGroup(profile=key[0], measurement=key[1])
        group.patterns.append(pattern)

    merged = len(patterns) - len(groups)
    if merged:
        logger.debug("grouped %d patterns into %d groups (%d duplicates)", len(patterns), len(groups), merged)
    return list(groups.values())


def pick_representative(
    patterns: Sequence[Pattern],
    requested_profile: Optional[str] = None,
) -> Pattern:
    """Best pattern of a group: profile match, then confidence, then frequency.

    Ties keep the earlier pattern.
    """
    if not patterns:
        raise ValueError("Cannot pick a representative from an empty group")

    def rank(p: Pattern) -> Tuple[int, float, int]:
        match = profile_match_score(p.profile, requested_profile) if requested_profile else NO_MATCH
        return match, p.confidence, p.frequency

    best = patterns[0]
    for candidate in patterns[1:]:
        if rank(candidate) > rank(best):
            best = candidate
    return best
