"""Tests for TaggedResultCache."""

from unittest.mock import patch

from cutlist_suggest.cache import TAG_SUGGESTION_PATTERNS, TaggedResultCache


class TestTaggedResultCache:
    def test_get_missing_returns_default(self):
        cache = TaggedResultCache()
        assert cache.get("nope") is None
        assert cache.get("nope", []) == []

    def test_set_and_get(self):
        cache = TaggedResultCache()
        cache.set("suggest:products:DOOR:10", ["DOOR"], tags=[TAG_SUGGESTION_PATTERNS])
        assert cache.get("suggest:products:DOOR:10") == ["DOOR"]
        assert len(cache) == 1

    def test_entries_expire(self):
        cache = TaggedResultCache(ttl_seconds=10)
        with patch("cutlist_suggest.cache.time.monotonic", return_value=100.0):
            cache.set("k", "v")
        with patch("cutlist_suggest.cache.time.monotonic", return_value=109.0):
            assert cache.get("k") == "v"
        with patch("cutlist_suggest.cache.time.monotonic", return_value=110.0):
            assert cache.get("k") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self):
        cache = TaggedResultCache(ttl_seconds=10)
        with patch("cutlist_suggest.cache.time.monotonic", return_value=0.0):
            cache.set("k", "v", ttl=1000)
        with patch("cutlist_suggest.cache.time.monotonic", return_value=500.0):
            assert cache.get("k") == "v"

    def test_invalidate_by_tag_only_drops_tagged(self):
        cache = TaggedResultCache()
        cache.set("a", 1, tags=[TAG_SUGGESTION_PATTERNS])
        cache.set("b", 2, tags=[TAG_SUGGESTION_PATTERNS, "other"])
        cache.set("c", 3, tags=["other"])

        assert cache.invalidate_by_tag(TAG_SUGGESTION_PATTERNS) == 2
        assert cache.get("a") is None
        assert cache.get("b") is None
        assert cache.get("c") == 3
        assert cache.invalidate_by_tag(TAG_SUGGESTION_PATTERNS) == 0

    def test_overwrite_moves_tags(self):
        cache = TaggedResultCache()
        cache.set("a", 1, tags=["first"])
        cache.set("a", 2, tags=["second"])
        assert cache.invalidate_by_tag("first") == 0
        assert cache.get("a") == 2
        assert cache.invalidate_by_tag("second") == 1

    def test_delete_and_clear(self):
        cache = TaggedResultCache()
        cache.set("a", 1, tags=["t"])
        cache.set("b", 2)
        cache.delete("a")
        assert cache.get("a") is None
        assert cache.invalidate_by_tag("t") == 0
        cache.clear()
        assert len(cache) == 0
