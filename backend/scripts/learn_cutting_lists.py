#!/usr/bin/env python3
"""Batch learning and maintenance for the suggestion pattern store.

Usage locally:
    python -m scripts.learn_cutting_lists --input exports/cutting_lists.json
    python -m scripts.learn_cutting_lists --cleanup                # retention sweep
    python -m scripts.learn_cutting_lists --refresh-confidence     # recompute stored confidence
    python -m scripts.learn_cutting_lists --stats                  # print statistics as JSON

Steps run in the order: input, cleanup, refresh-confidence, stats.

The input file holds either a JSON array of cutting lists or a dump of an
id -> cutting list map (``[[id, list], ...]``). Keys may be snake_case or
camelCase. Re-running the same file learns every line again.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from cutlist_suggest.config import Settings
from cutlist_suggest.facade import SuggestionFacade
from cutlist_suggest.logging_config import setup_logging_from_settings
from cutlist_suggest.schemas.suggestion import LearningSummary

logger = logging.getLogger("learn_cutting_lists")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Learn suggestion patterns from exported cutting lists.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=None,
        help="JSON file of cutting lists to learn from",
    )
    parser.add_argument(
        "--cleanup",
        action="store_true",
        help="Delete old, rarely used patterns (retention_days / frequency_floor from settings)",
    )
    parser.add_argument(
        "--refresh-confidence",
        action="store_true",
        help="Recompute every stored confidence score",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print pattern statistics as JSON",
    )
    args = parser.parse_args(argv)
    if not (args.input or args.cleanup or args.refresh_confidence or args.stats):
        parser.error("nothing to do: pass --input, --cleanup, --refresh-confidence or --stats")
    return args


def load_cutting_lists(path: Path) -> List[Any]:
    """Read a cutting-list export, unwrapping ``[[id, list], ...]`` map dumps."""
    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        raw = [raw]
    lists = []
    for entry in raw:
        if isinstance(entry, list) and len(entry) == 2 and isinstance(entry[1], dict):
            lists.append(entry[1])
        elif isinstance(entry, dict):
            lists.append(entry)
        else:
            logger.warning("Skipping unrecognised entry of type %s", type(entry).__name__)
    return lists


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = Settings()
    setup_logging_from_settings(settings)

    t0 = time.time()
    with SuggestionFacade(settings=settings) as facade:
        if args.input:
            if not args.input.exists():
                logger.error("Input file not found: %s", args.input)
                return 1
            total = LearningSummary()
            for cutting_list in load_cutting_lists(args.input):
                summary = facade.learn_from_cutting_list(cutting_list)
                total.learned += summary.learned
                total.rejected += summary.rejected
                total.failed += summary.failed
            logger.info(
                "Learned %d lines (%d rejected, %d failed) from %s",
                total.learned, total.rejected, total.failed, args.input,
            )

        if args.cleanup:
            deleted = facade.cleanup_old_patterns()
            logger.info(
                "Deleted %d patterns unused for %d days with frequency < %d",
                deleted, settings.retention_days, settings.frequency_floor,
            )

        if args.refresh_confidence:
            updated = facade.refresh_confidence_scores()
            logger.info("Refreshed confidence of %d patterns", updated)

        if args.stats:
            print(json.dumps(facade.get_statistics().model_dump(), indent=2))

    logger.info("Done in %.1fs", time.time() - t0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
