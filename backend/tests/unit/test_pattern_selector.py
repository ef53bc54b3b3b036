"""Unit tests for smart-apply grouping and representative selection."""

from datetime import datetime, timezone

import pytest

from cutlist_suggest.engines.pattern_selector import (
    EXACT_MATCH,
    NO_MATCH,
    PARTIAL_MATCH,
    group_by_profile_measurement,
    pick_representative,
    profile_match_score,
)
from cutlist_suggest.schemas.pattern import Pattern

_ids = iter(range(1, 10_000))


def _pattern(profile="FRAME", measurement="990MM", confidence=50.0, frequency=1, **overrides) -> Pattern:
    fields = dict(
        id=next(_ids),
        context_key="DOOR|100X200",
        pattern_key=f"DOOR|100X200|{profile}|{measurement}",
        product_name="DOOR",
        size="100X200",
        profile=profile,
        measurement=measurement,
        confidence=confidence,
        frequency=frequency,
        last_used=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    fields.update(overrides)
    return Pattern(**fields)


class TestProfileMatchScore:
    @pytest.mark.parametrize("profile,requested,expected", [
        ("FRAME", "frame", EXACT_MATCH),
        ("'Frame' ", "FRAME", EXACT_MATCH),
        ("FRAME A", "FRAME", PARTIAL_MATCH),
        ("FRAME", "FRAME A", PARTIAL_MATCH),
        ("HINGE", "FRAME", NO_MATCH),
        ("FRAME", "", NO_MATCH),
        ("FRAME", None, NO_MATCH),
    ])
    def test_scores(self, profile, requested, expected):
        assert profile_match_score(profile, requested) == expected


class TestGroupByProfileMeasurement:
    def test_normalized_pairs_share_a_group(self):
        a = _pattern(profile="FRAME", measurement="990MM")
        b = _pattern(profile="frame", measurement="990.0 mm")
        c = _pattern(profile="SILL", measurement="990MM")

        groups = group_by_profile_measurement([a, b, c])

        assert [g.key for g in groups] == [("FRAME", "990"), ("SILL", "990")]
        assert groups[0].patterns == [a, b]
        assert groups[0].first is a

    def test_first_seen_order_kept(self):
        patterns = [_pattern(profile=p) for p in ("SILL", "FRAME", "HEAD", "FRAME")]
        groups = group_by_profile_measurement(patterns)
        assert [g.profile for g in groups] == ["SILL", "FRAME", "HEAD"]

    def test_mean_confidence(self):
        groups = group_by_profile_measurement([
            _pattern(confidence=40.0),
            _pattern(confidence=80.0, measurement="990"),
        ])
        assert groups[0].mean_confidence == 60.0

    def test_empty(self):
        assert group_by_profile_measurement([]) == []


class TestPickRepresentative:
    def test_requested_profile_wins_over_confidence(self):
        exact = _pattern(profile="FRAME", confidence=10.0)
        partial = _pattern(profile="FRAME A", confidence=90.0)
        assert pick_representative([partial, exact], "frame") is exact

    def test_confidence_breaks_match_tie(self):
        low = _pattern(confidence=40.0, frequency=9)
        high = _pattern(confidence=60.0, frequency=1)
        assert pick_representative([low, high], "FRAME") is high

    def test_frequency_breaks_confidence_tie(self):
        rare = _pattern(confidence=50.0, frequency=1)
        common = _pattern(confidence=50.0, frequency=4)
        assert pick_representative([rare, common]) is common

    def test_full_tie_keeps_first(self):
        first = _pattern()
        second = _pattern()
        assert pick_representative([first, second]) is first

    def test_without_requested_profile_ignores_match(self):
        exact = _pattern(profile="FRAME", confidence=10.0)
        other = _pattern(profile="HINGE", confidence=90.0)
        assert pick_representative([exact, other]) is other

    def test_empty_group_rejected(self):
        with pytest.raises(ValueError):
            pick_representative([])
