"""Fixture loading helpers for offline tests."""

import json
from pathlib import Path
from typing import Any

FIXTURES_DIR = Path(__file__).resolve().parent


def fixture_path(name: str) -> Path:
    path = FIXTURES_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"Fixture not found: {path}")
    return path


def load_fixture(name: str) -> Any:
    """Load a JSON fixture file by name."""
    return json.loads(fixture_path(name).read_text(encoding="utf-8"))
