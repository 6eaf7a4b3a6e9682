"""Mutable forecasting session state, owned by one CritiqueController run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from .schemas import ClusterMeta, Critique, Evidence, ForecastSnapshot, InfluenceItem
from .store import EvidenceStore


class SessionPhase(str, Enum):
    """Critique controller phases."""

    GATHERING = "gathering"
    CLUSTERING = "clustering"
    AGGREGATING = "aggregating"
    CRITIQUING = "critiquing"
    FOLLOWUP_GATHERING = "followup_gathering"
    FINALIZED = "finalized"


ALLOWED_TRANSITIONS: dict[SessionPhase, frozenset[SessionPhase]] = {
    SessionPhase.GATHERING: frozenset({SessionPhase.CLUSTERING}),
    SessionPhase.CLUSTERING: frozenset({SessionPhase.AGGREGATING}),
    SessionPhase.AGGREGATING: frozenset({SessionPhase.CRITIQUING}),
    SessionPhase.CRITIQUING: frozenset(
        {SessionPhase.FOLLOWUP_GATHERING, SessionPhase.FINALIZED}
    ),
    SessionPhase.FOLLOWUP_GATHERING: frozenset({SessionPhase.CLUSTERING}),
    SessionPhase.FINALIZED: frozenset(),
}


@dataclass
class ForecastState:
    """Accumulated result of one forecasting session."""

    question: str
    p0: float
    market_prob: float | None = None
    p_neutral: float = 0.5
    p_aware: float | None = None
    store: EvidenceStore = field(default_factory=EvidenceStore)
    clusters: dict[str, ClusterMeta] = field(default_factory=dict)
    influence: dict[str, InfluenceItem] = field(default_factory=dict)
    iteration: int = 0
    drivers: list[str] = field(default_factory=list)
    phase: SessionPhase = SessionPhase.GATHERING
    critiques: list[Critique] = field(default_factory=list)
    confidence_issues: list[str] = field(default_factory=list)
    correlation_overrides: dict[str, float] = field(default_factory=dict)
    degraded_cycles: int = 0
    finalized_at: datetime | None = None

    def __post_init__(self) -> None:
        self.p_neutral = self.p0

    @property
    def evidence(self) -> list[Evidence]:
        return self.store.items()

    @property
    def is_finalized(self) -> bool:
        return self.phase is SessionPhase.FINALIZED

    def add_confidence_issues(self, issues: list[str]) -> None:
        for issue in issues:
            if issue not in self.confidence_issues:
                self.confidence_issues.append(issue)

    def snapshot(self) -> ForecastSnapshot:
        """Build the read-only output record for downstream consumers."""
        extra: dict[str, datetime] = {}
        if self.finalized_at is not None:
            extra["finalized_at"] = self.finalized_at
        return ForecastSnapshot(
            question=self.question,
            p0=self.p0,
            p_neutral=self.p_neutral,
            p_aware=self.p_aware,
            evidence_count=len(self.store),
            cluster_count=len(self.clusters),
            iteration=self.iteration,
            drivers=list(self.drivers),
            confidence_issues=list(self.confidence_issues),
            degraded=self.degraded_cycles > 0,
            **extra,
        )
