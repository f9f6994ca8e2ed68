"""Configuration management for the capital dashboard.

This module centralizes all configuration values including paths,
thresholds, and environment variable overrides.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

# Base project root - assumes this file is in capital_dashboard/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("CAPITAL_DATA_DIR", _PROJECT_ROOT / "data"))
CACHE_DIR = Path(os.getenv("CAPITAL_CACHE_DIR", DATA_DIR / "cache"))

# Database
DB_PATH = Path(
    os.getenv("CAPITAL_DB_PATH", DATA_DIR / "capital.db")
).resolve()

# Authentication happens upstream; the dashboard only needs a user id
DEFAULT_USER_ID = os.getenv("CAPITAL_USER_ID", "local")

# Quotes
QUOTE_CACHE_SECONDS = float(os.getenv("CAPITAL_QUOTE_CACHE_SECONDS", 5 * 60))
QUOTE_REFRESH_SECONDS = float(os.getenv("CAPITAL_QUOTE_REFRESH_SECONDS", 5 * 60))
HTTP_TIMEOUT = float(os.getenv("CAPITAL_HTTP_TIMEOUT", 10))

LOG_LEVEL = os.getenv("CAPITAL_LOG_LEVEL", "INFO")

# Budget status thresholds, in percent of the monthly limit
WARNING_THRESHOLD = 80.0
EXCEEDED_THRESHOLD = 100.0

# Coarse month used for goal savings plans
DAYS_PER_MONTH = 30


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, CACHE_DIR, DB_PATH.parent]:
        directory.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once for the app or a script entry point."""
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
