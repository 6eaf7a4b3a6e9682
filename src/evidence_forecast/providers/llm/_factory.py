"""Factory function for provider backends."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from evidence_forecast.config import ForecastConfig

from ._claude import ClaudeCritic, ClaudeDriverGenerator, ClaudeEvidenceSource, ClaudeReporter
from ._client import resolve_client
from ._mock import MockCritic, MockDriverGenerator, MockEvidenceSource, MockReporter

if TYPE_CHECKING:
    from ._schemas import Critic, DriverGenerator, EvidenceSource, Reporter


@dataclass(frozen=True)
class ProviderBundle:
    """External services used by one forecasting session."""

    backend: str
    critic: Critic
    evidence_source: EvidenceSource
    drivers: DriverGenerator
    reporter: Reporter


def get_backend(
    backend: str | None = None,
    *,
    config: ForecastConfig | None = None,
) -> ProviderBundle:
    """Construct the provider bundle for a backend.

    Args:
        backend: Explicit backend override ("anthropic" or "mock"). When None, reads
            FORECAST_LLM_BACKEND (default: "anthropic").
        config: Session configuration supplying model identifiers.

    Returns:
        A ProviderBundle with critic, evidence source, driver generator and reporter.
    """
    backend_raw = backend
    if backend_raw is None:
        backend_raw = os.getenv("FORECAST_LLM_BACKEND") or "anthropic"
    backend_value = backend_raw.strip().lower()
    config = config or ForecastConfig()

    if backend_value == "mock":
        return ProviderBundle(
            backend=backend_value,
            critic=MockCritic(),
            evidence_source=MockEvidenceSource(),
            drivers=MockDriverGenerator(),
            reporter=MockReporter(),
        )
    if backend_value == "anthropic":
        client = resolve_client()
        return ProviderBundle(
            backend=backend_value,
            critic=ClaudeCritic(model=config.model, client=client),
            evidence_source=ClaudeEvidenceSource(model=config.model, client=client),
            drivers=ClaudeDriverGenerator(model=config.model_small, client=client),
            reporter=ClaudeReporter(model=config.model_small, client=client),
        )

    raise ValueError(f"Unknown LLM backend: {backend_value!r}")
