"""
Centralized path defaults for Evidence Forecast.

All paths are expressed relative to the current working directory. Every path default can be
overridden via CLI options.
"""

from pathlib import Path

DEFAULT_DATA_DIR = Path("data")
DEFAULT_SESSIONS_DIR = DEFAULT_DATA_DIR / "forecasts"

__all__ = [
    "DEFAULT_DATA_DIR",
    "DEFAULT_SESSIONS_DIR",
]
