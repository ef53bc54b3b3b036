"""Unit tests for SuggestionPatternModel and PatternRepository."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from cutlist_suggest.models.suggestion_pattern import SuggestionPatternModel
from cutlist_suggest.schemas.pattern import Pattern, PatternUpdate, RatioSample


class TestCreateAndLookup:
    def test_create_returns_validated_pattern(self, add_pattern):
        p = add_pattern(ratios=(2.0,), original_index=3)
        assert isinstance(p, Pattern)
        assert p.id is not None
        assert p.pattern_key == "DOOR|100X200|FRAME|990"
        assert p.ratio_history == [RatioSample(order_qty=10, profile_qty=20, ratio=2.0)]
        assert p.metadata.original_index == 3
        assert p.last_used.tzinfo is not None

    def test_metadata_column_round_trips(self, db, add_pattern):
        add_pattern(original_index=1)
        row = db.query(SuggestionPatternModel).one()
        assert row.pattern_metadata == {"original_index": 1}

    def test_find_by_pattern_key(self, pattern_repo, add_pattern):
        add_pattern()
        found = pattern_repo.find_by_pattern_key("DOOR|100X200|FRAME|990")
        assert found is not None
        assert found.profile == "FRAME"
        assert pattern_repo.find_by_pattern_key("DOOR|100X200|HINGE|990") is None

    def test_find_by_pattern_key_for_update(self, pattern_repo, add_pattern):
        add_pattern()
        assert pattern_repo.find_by_pattern_key("DOOR|100X200|FRAME|990", for_update=True) is not None

    def test_duplicate_pattern_key_rejected(self, db, pattern_repo, add_pattern):
        add_pattern()
        with pytest.raises(IntegrityError):
            add_pattern(measurement="990.0 mm")
        db.rollback()
        assert pattern_repo.count() == 1

    def test_find_by_context_key_orders_by_original_index(self, pattern_repo, add_pattern):
        add_pattern(profile="SILL", original_index=2)
        add_pattern(profile="FRAME", original_index=0)
        add_pattern(profile="GLASS BEAD")  # no index: after indexed rows
        add_pattern(profile="HEAD", original_index=1)
        add_pattern(product_name="WINDOW", profile="FRAME", original_index=0)

        profiles = [p.profile for p in pattern_repo.find_by_context_key("DOOR|100X200")]
        assert profiles == ["FRAME", "HEAD", "SILL", "GLASS BEAD"]

    def test_find_by_product_and_size_normalizes(self, pattern_repo, add_pattern):
        add_pattern()
        assert len(pattern_repo.find_by_product_and_size(' "door" ', "100X200 ")) == 1


class TestUpdate:
    def test_partial_update(self, db, pattern_repo, add_pattern):
        p = add_pattern(ratios=(2.0,), quantity=4, order_quantity=2, ratio=2.0)
        updated = pattern_repo.update(p.id, PatternUpdate(
            frequency=2,
            ratio_history=p.ratio_history + [RatioSample(order_qty=2, profile_qty=6, ratio=3.0)],
            average_ratio=2.5,
        ))
        db.commit()

        assert updated.frequency == 2
        assert updated.average_ratio == 2.5
        assert [s.ratio for s in updated.ratio_history] == [2.0, 3.0]
        # untouched fields
        assert (updated.quantity, updated.order_quantity, updated.ratio) == (4, 2, 2.0)
        assert updated.confidence == 50.0

    def test_update_missing_pattern_raises(self, pattern_repo):
        with pytest.raises(LookupError):
            pattern_repo.update(999, PatternUpdate(frequency=2))

    def test_update_confidence(self, db, pattern_repo, add_pattern):
        p = add_pattern()
        assert pattern_repo.update_confidence(p.id, 82.5).confidence == 82.5

    def test_bulk_update_confidence(self, db, pattern_repo, add_pattern):
        a = add_pattern(profile="FRAME")
        b = add_pattern(profile="SILL")
        assert pattern_repo.bulk_update_confidence([(a.id, 10.0), (b.id, 90.0)]) == 2
        db.commit()
        by_profile = {p.profile: p.confidence for p in pattern_repo.list_all()}
        assert by_profile == {"FRAME": 10.0, "SILL": 90.0}

    def test_bulk_update_nothing(self, pattern_repo):
        assert pattern_repo.bulk_update_confidence([]) == 0

    def test_store_failure_is_logged_and_reraised(self, pattern_repo):
        error = OperationalError("UPDATE", {}, Exception("database is locked"))
        with patch.object(pattern_repo, "get_row", side_effect=error):
            with pytest.raises(OperationalError):
                pattern_repo.update(1, PatternUpdate(frequency=2))


class TestSearch:
    def test_search_by_product_substring(self, pattern_repo, add_pattern):
        add_pattern(product_name="DOOR")
        add_pattern(product_name="BALCONY DOOR", confidence=80.0)
        add_pattern(product_name="WINDOW")

        results = pattern_repo.search_by_product("door", limit=10)
        assert [p.product_name for p in results] == ["BALCONY DOOR", "DOOR"]

    def test_search_orders_by_confidence_then_frequency(self, pattern_repo, add_pattern):
        add_pattern(profile="A", confidence=50.0, frequency=1)
        add_pattern(profile="B", confidence=50.0, frequency=7)
        add_pattern(profile="C", confidence=60.0, frequency=1)
        assert [p.profile for p in pattern_repo.search_by_product("DOOR")] == ["C", "B", "A"]

    def test_search_treats_like_wildcards_literally(self, pattern_repo, add_pattern):
        add_pattern(product_name="DOOR_A")
        add_pattern(product_name="DOOR")
        add_pattern(product_name="WINDOW")

        assert [p.product_name for p in pattern_repo.search_by_product("_")] == ["DOOR_A"]
        assert [p.product_name for p in pattern_repo.search_by_product("R_A")] == ["DOOR_A"]
        assert pattern_repo.search_by_product("%") == []

    def test_search_respects_limit(self, pattern_repo, add_pattern):
        for profile in ("A", "B", "C"):
            add_pattern(profile=profile)
        assert len(pattern_repo.search_by_product("DOOR", limit=2)) == 2

    def test_unique_sizes_in_first_seen_order(self, pattern_repo, add_pattern):
        add_pattern(size="90x200")
        add_pattern(size="100x200")
        add_pattern(size="90x200", profile="SILL")
        add_pattern(product_name="WINDOW", size="50x50")
        assert pattern_repo.get_unique_sizes_for_product("door") == ["90X200", "100X200"]

    def test_unique_products_count(self, pattern_repo, add_pattern):
        add_pattern(product_name="DOOR")
        add_pattern(product_name="DOOR", profile="SILL")
        add_pattern(product_name="WINDOW")
        assert pattern_repo.get_unique_products_count() == 2

    def test_most_frequent(self, pattern_repo, add_pattern):
        add_pattern(profile="A", frequency=2)
        add_pattern(profile="B", frequency=9)
        add_pattern(profile="C", frequency=5)
        assert [p.profile for p in pattern_repo.get_most_frequent_patterns(2)] == ["B", "C"]

    def test_recent_patterns(self, pattern_repo, add_pattern):
        add_pattern(profile="OLD", days_ago=45)
        add_pattern(profile="NEW", days_ago=2)
        assert [p.profile for p in pattern_repo.get_recent_patterns(30)] == ["NEW"]


class TestMaintenance:
    def test_delete_old_patterns_keeps_frequent_and_recent(self, db, pattern_repo, add_pattern):
        add_pattern(profile="OLD RARE", days_ago=200, frequency=2)
        add_pattern(profile="OLD FREQUENT", days_ago=200, frequency=5)
        add_pattern(profile="NEW RARE", days_ago=10, frequency=1)

        deleted = pattern_repo.delete_old_patterns(retention_days=180, frequency_floor=5)
        db.commit()

        assert deleted == 1
        assert sorted(p.profile for p in pattern_repo.list_all()) == ["NEW RARE", "OLD FREQUENT"]

    def test_statistics_bands(self, pattern_repo, add_pattern):
        add_pattern(profile="A", confidence=90.0)
        add_pattern(profile="B", confidence=70.0)
        add_pattern(profile="C", confidence=55.0)
        add_pattern(profile="D", confidence=40.0)
        add_pattern(profile="E", confidence=10.0)

        stats = pattern_repo.get_statistics()
        assert stats.total_patterns == 5
        assert (stats.high_confidence, stats.medium_confidence, stats.low_confidence) == (2, 2, 1)
        assert stats.average_confidence == pytest.approx(53.0)
        assert len(stats.most_frequent) == 5

    def test_statistics_empty_store(self, pattern_repo):
        stats = pattern_repo.get_statistics()
        assert stats.total_patterns == 0
        assert stats.average_confidence == 0.0
        assert stats.most_frequent == []
