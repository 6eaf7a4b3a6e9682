"""
Evidence Forecast.

Evidence aggregation and critique-driven refinement for binary prediction-market questions.
"""

__version__ = "0.1.0"

from evidence_forecast.config import ForecastConfig
from evidence_forecast.forecasting import (
    CritiqueController,
    Evidence,
    ForecastSnapshot,
    ForecastState,
)

# Configure structlog once at import time (quiet by default).
from evidence_forecast.logging import configure_structlog

configure_structlog()

__all__ = [
    "CritiqueController",
    "Evidence",
    "ForecastConfig",
    "ForecastSnapshot",
    "ForecastState",
    "__version__",
]
