"""End-to-end learning test: exported cutting lists in, suggestions out.

Uses the fixture export to:
  1. Learn every cutting list through the facade
  2. Query product / size / profile suggestions
  3. Smart-apply an order quantity
  4. Run the batch script against a file-backed database

This catches integration issues between layers that unit tests miss:
  - Payload aliases (camelCase exports vs snake_case)
  - Key normalization across lists
  - Session / commit handling between learning and querying

Run with:
    pytest tests/integration/test_learning_e2e.py -v
"""

import json
import sys
from pathlib import Path

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from cutlist_suggest.facade import SuggestionFacade
from cutlist_suggest.schemas.suggestion import RatioSource
from scripts.learn_cutting_lists import load_cutting_lists, main
from tests.fixtures import fixture_path


def _printed_stats(out: str) -> dict:
    """The --stats JSON block, skipping any log lines around it."""
    start = out.index('{\n  "total_patterns"')
    return json.JSONDecoder().raw_decode(out, start)[0]


@pytest.fixture()
def cutting_lists():
    return load_cutting_lists(fixture_path("cutting_lists.json"))


@pytest.fixture()
def facade(db, settings, cutting_lists):
    f = SuggestionFacade(settings, session=db)
    for cutting_list in cutting_lists:
        f.learn_from_cutting_list(cutting_list)
    yield f
    f.close()


class TestExportLoading:
    def test_map_dump_entries_unwrapped(self, cutting_lists):
        assert [c["title"] for c in cutting_lists] == ["Week 10", "Week 11"]


class TestLearnThenSuggest:
    def test_patterns_merged_across_lists(self, facade):
        stats = facade.get_statistics()
        assert stats.total_patterns == 5
        assert stats.unique_products == 2

    def test_product_and_size_suggestions(self, facade):
        assert sorted(s.value for s in facade.get_product_suggestions("o")) == ["DOOR", "WINDOW"]
        assert sorted(s.value for s in facade.get_size_suggestions("door")) == ["100X200", "90X210"]

    def test_profile_suggestions_rank_reinforced_patterns_first(self, facade):
        profiles = facade.get_profile_suggestions("Door", "100x200", order_quantity=3)
        assert profiles[0].profile in ("FRAME", "SILL")
        assert profiles[-1].profile == "HEAD"
        by_profile = {p.profile: p for p in profiles}
        assert by_profile["FRAME"].suggested_quantity == 6
        assert by_profile["FRAME"].frequency == 2

    def test_smart_apply_predicts_every_profile_in_order(self, facade):
        result = facade.apply_smart_suggestion("DOOR", "100X200", 5)

        assert [(p.profile, p.measurement, p.quantity) for p in result.profiles] == [
            ("FRAME", "990", 10),
            ("SILL", "1200", 5),
            ("HEAD", "880", 5),
        ]
        assert all(p.ratio_source == RatioSource.RATIO_HISTORY for p in result.profiles)
        assert result.total_confidence == 50.0

    def test_other_context_untouched(self, facade):
        [frame] = facade.apply_smart_suggestion("DOOR", "90x210", 2).profiles
        assert (frame.profile, frame.quantity) == ("FRAME", 4)


class TestBatchScript:
    @pytest.fixture(autouse=True)
    def _file_database(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'suggest.db'}")

    def test_learn_and_print_stats(self, capsys):
        code = main(["--input", str(fixture_path("cutting_lists.json")), "--stats"])

        assert code == 0
        stats = _printed_stats(capsys.readouterr().out)
        assert stats["total_patterns"] == 5
        assert stats["unique_products"] == 2

    def test_maintenance_flags(self, capsys):
        main(["--input", str(fixture_path("cutting_lists.json"))])
        assert main(["--cleanup", "--refresh-confidence", "--stats"]) == 0
        assert _printed_stats(capsys.readouterr().out)["total_patterns"] == 5

    def test_missing_input_file(self, tmp_path):
        assert main(["--input", str(tmp_path / "missing.json")]) == 1

    def test_nothing_to_do(self):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 2
