"""
Shared test fixtures.

PHILOSOPHY: Use REAL objects wherever possible. Only fake at system boundaries.
- Real Pydantic models (not dicts pretending to be models)
- Real EvidenceStore / CritiqueController
- Mock* providers or fake Anthropic clients ONLY for external services
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from evidence_forecast.config import ForecastConfig
from evidence_forecast.forecasting.schemas import Evidence, EvidenceType

if TYPE_CHECKING:
    from collections.abc import Callable


# ============================================================================
# Domain Object Builders (create REAL objects, not dicts)
# ============================================================================
@pytest.fixture
def make_evidence() -> Callable[..., Evidence]:
    """Factory to create REAL Evidence objects with sensible defaults."""

    def _make(
        evidence_id: str = "e1",
        polarity: float = 0.6,
        *,
        origin_id: str | None = None,
        type: EvidenceType | str = EvidenceType.B,
        verifiability: float = 0.8,
        corroborations_indep: int = 0,
        consistency: float = 0.0,
        **overrides: Any,
    ) -> Evidence:
        return Evidence(
            id=evidence_id,
            claim=overrides.pop("claim", f"Claim for {evidence_id}"),
            polarity=polarity,
            type=EvidenceType(type),
            verifiability=verifiability,
            corroborations_indep=corroborations_indep,
            consistency=consistency,
            origin_id=origin_id or f"origin-{evidence_id}",
            urls=overrides.pop("urls", [f"https://www.example.com/{evidence_id}"]),
            **overrides,
        )

    return _make


# ============================================================================
# Configuration
# ============================================================================
@pytest.fixture
def fast_config() -> ForecastConfig:
    """Config with short timeouts and no retry delay, so failure paths run quickly."""
    return ForecastConfig(call_timeout_seconds=0.5, retry_delay_seconds=0.0)


@pytest.fixture(autouse=True)
def _isolate_forecast_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer FORECAST_* settings out of unit tests."""
    for name in (
        "FORECAST_LLM_BACKEND",
        "FORECAST_MODEL",
        "FORECAST_MODEL_SMALL",
        "FORECAST_MAX_ITERATIONS",
        "FORECAST_MARKET_BLEND_WEIGHT",
        "FORECAST_CALL_TIMEOUT",
        "FORECAST_RETRY_DELAY",
        "FORECAST_EPSILON",
    ):
        monkeypatch.delenv(name, raising=False)
