"""Application configuration loaded from environment variables."""

import os
from pathlib import Path
from pydantic_settings import BaseSettings

# Check if .env file exists and is readable
_env_file = None
try:
    env_path = Path(".env")
    if env_path.exists() and os.access(env_path, os.R_OK):
        _env_file = ".env"
except (OSError, PermissionError):
    # If we can't access .env, continue without it
    pass


class Settings(BaseSettings):
    """All configuration for the cutting-list suggestion engine.

    Values are loaded from environment variables or a .env file.
    """

    # Application
    app_name: str = "cutlist-suggest"
    debug: bool = False

    # Database (pattern store + historical cutting lists)
    database_url: str = "sqlite:///./data/cutlist_suggest.db"

    # Logging
    json_logs: bool = False
    log_level: str = "INFO"

    # Scoring
    recency_half_life_days: float = 90.0
    seed_confidence: float = 50.0  # confidence given to a freshly learned pattern

    # Alternatives surfaced next to a profile suggestion
    alternative_similarity_threshold: float = 0.5
    max_alternatives: int = 3

    # Maintenance sweep: delete patterns unused for retention_days AND
    # seen fewer than frequency_floor times
    retention_days: int = 180
    frequency_floor: int = 5

    # Statistics window for "recent activity"
    recent_activity_days: int = 30

    # Suggestion result cache
    cache_ttl_seconds: int = 300

    model_config = {
        "env_file": _env_file,
        "env_file_encoding": "utf-8",
        "env_file_ignore_empty": True,
    }
