"""LLM-backed external services for forecasting sessions.

- `Mock*` providers stay available for tests/CI and zero-dependency runs.
- `Claude*` providers (Anthropic) use tool-based structured outputs.
"""

from __future__ import annotations

from ._claude import ClaudeCritic, ClaudeDriverGenerator, ClaudeEvidenceSource, ClaudeReporter
from ._factory import ProviderBundle, get_backend
from ._mock import MockCritic, MockDriverGenerator, MockEvidenceSource, MockReporter
from ._schemas import (
    Critic,
    DriverGenerator,
    DriversToolInput,
    EvidenceDraft,
    EvidenceSource,
    EvidenceToolInput,
    Reporter,
)

__all__ = [
    "ClaudeCritic",
    "ClaudeDriverGenerator",
    "ClaudeEvidenceSource",
    "ClaudeReporter",
    "Critic",
    "DriverGenerator",
    "DriversToolInput",
    "EvidenceDraft",
    "EvidenceSource",
    "EvidenceToolInput",
    "MockCritic",
    "MockDriverGenerator",
    "MockEvidenceSource",
    "MockReporter",
    "ProviderBundle",
    "Reporter",
    "get_backend",
]
