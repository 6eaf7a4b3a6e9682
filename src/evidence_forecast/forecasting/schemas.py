"""Pydantic schemas for forecasting session I/O.

Every record that crosses a service boundary (evidence from a search backend, a critique from
the critic, the finalized snapshot handed to report generators) is an explicit frozen model with
field-level range constraints, so malformed external output is rejected at construction rather
than trusted. Wire names follow the camelCase used by the search and critic payloads; Python
code uses the snake_case attribute names.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from evidence_forecast.constants import MAX_FOLLOW_UP_SEARCHES

_WIRE_CONFIG = ConfigDict(frozen=True, populate_by_name=True)


class EvidenceType(str, Enum):
    """Ordinal evidence quality tier (A = direct primary evidence, D = weak/secondary)."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"


class SearchSide(str, Enum):
    """Which side of the question a search targets."""

    FOR = "FOR"
    AGAINST = "AGAINST"
    NEUTRAL = "NEUTRAL"
    BOTH = "BOTH"


class Evidence(BaseModel):
    """One discrete claim bearing on the question."""

    model_config = _WIRE_CONFIG

    id: str = Field(min_length=1, description="Stable identifier (e.g., 'e12')")
    claim: str = Field(description="Text of the assertion")
    polarity: float = Field(
        ge=-1.0,
        le=1.0,
        description="Sign = supports (+) or contradicts (-) YES, magnitude = strength",
    )
    type: EvidenceType = Field(description="Quality tier A..D")
    verifiability: float = Field(ge=0.0, le=1.0)
    corroborations_indep: int = Field(default=0, ge=0, alias="corroborationsIndep")
    consistency: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Agreement with other evidence from the same origin",
    )
    published_at: datetime | None = Field(default=None, alias="publishedAt")
    urls: list[str] = Field(default_factory=list)
    origin_id: str = Field(min_length=1, alias="originId", description="Source/publisher id")

    @field_validator("published_at", mode="before")
    @classmethod
    def _parse_not_available(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in {"", "n/a", "na", "unknown"}:
            return None
        return value

    @property
    def is_pro(self) -> bool:
        return self.polarity > 0

    @property
    def is_con(self) -> bool:
        return self.polarity < 0


class ClusterMeta(BaseModel):
    """Correlation group of evidence sharing an origin."""

    model_config = _WIRE_CONFIG

    cluster_id: str = Field(alias="clusterId")
    rho: float = Field(ge=0.0, le=1.0, description="Estimated within-cluster correlation")
    m_eff: float = Field(ge=1.0, alias="mEff", description="Effective independent item count")
    size: int = Field(ge=1, description="Raw member count n")
    member_ids: tuple[str, ...] = Field(default=(), alias="memberIds")

    @model_validator(mode="after")
    def _check_effective_count(self) -> ClusterMeta:
        if self.m_eff > self.size + 1e-9:
            raise ValueError(f"mEff {self.m_eff} exceeds cluster size {self.size}")
        return self


class InfluenceItem(BaseModel):
    """Computed contribution of one evidence item to the posterior."""

    model_config = _WIRE_CONFIG

    evidence_id: str = Field(alias="evidenceId")
    log_lr: float = Field(alias="logLR", description="Log-likelihood-ratio contribution")
    delta_pp: float = Field(
        alias="deltaPP",
        description="Single-item percentage-point shift from the prior (reporting only)",
    )
    cluster_id: str | None = Field(default=None, alias="clusterId")

    @model_validator(mode="after")
    def _check_signs_agree(self) -> InfluenceItem:
        if (self.log_lr > 0) != (self.delta_pp > 0) or (self.log_lr < 0) != (self.delta_pp < 0):
            raise ValueError(
                f"logLR and deltaPP disagree in sign for {self.evidence_id}: "
                f"{self.log_lr} vs {self.delta_pp}"
            )
        return self


class FollowUpSearch(BaseModel):
    """A targeted search proposed by the critic to fill an evidence gap."""

    model_config = _WIRE_CONFIG

    query: str = Field(min_length=1, description="Specific search query to fill gaps")
    rationale: str = Field(default="", description="Why this search is needed")
    side: SearchSide = Field(default=SearchSide.BOTH)


class Critique(BaseModel):
    """Structured feedback from one critic pass."""

    model_config = _WIRE_CONFIG

    missing: list[str] = Field(default_factory=list, description="Evidentiary gaps")
    duplication_flags: list[str] = Field(
        default_factory=list,
        alias="duplicationFlags",
        description="Evidence ids (or comma-separated id groups) suspected redundant",
    )
    data_concerns: list[str] = Field(default_factory=list, alias="dataConcerns")
    follow_up_searches: list[FollowUpSearch] = Field(
        default_factory=list,
        alias="followUpSearches",
        max_length=MAX_FOLLOW_UP_SEARCHES,
    )
    correlation_adjustments: dict[str, Annotated[float, Field(ge=0.0, le=1.0)]] = Field(
        default_factory=dict,
        alias="correlationAdjustments",
        description="Cluster id -> replacement rho",
    )
    confidence_issues: list[str] = Field(default_factory=list, alias="confidenceIssues")

    @field_validator("duplication_flags", mode="before")
    @classmethod
    def _flatten_id_groups(cls, value: Any) -> Any:
        # Critics sometimes return groups as nested lists instead of joined strings.
        if isinstance(value, list):
            return [
                ",".join(str(part) for part in item) if isinstance(item, list | tuple) else item
                for item in value
            ]
        return value


class MarketReference(BaseModel):
    """Prior and optional market-implied probability for a question."""

    model_config = _WIRE_CONFIG

    p0: float = Field(ge=0.0, le=1.0, description="Prior probability (base rate or market price)")
    market_prob: float | None = Field(default=None, ge=0.0, le=1.0, alias="marketProb")


class ForecastSnapshot(BaseModel):
    """Read-only session output, stable once the session is finalized."""

    model_config = _WIRE_CONFIG

    question: str
    p0: float = Field(ge=0.0, le=1.0)
    p_neutral: float = Field(ge=0.0, le=1.0, alias="pNeutral")
    p_aware: float | None = Field(default=None, ge=0.0, le=1.0, alias="pAware")
    evidence_count: int = Field(ge=0, alias="evidenceCount")
    cluster_count: int = Field(ge=0, alias="clusterCount")
    iteration: int = Field(ge=0)
    drivers: list[str] = Field(default_factory=list)
    confidence_issues: list[str] = Field(default_factory=list, alias="confidenceIssues")
    degraded: bool = Field(default=False, description="Any critique cycle used the fallback")
    finalized_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), alias="finalizedAt"
    )


class VerificationReport(BaseModel):
    """Result of rule-based checks on a finalized session."""

    model_config = ConfigDict(frozen=True)

    passed: bool = Field(description="True when no rule failed")
    issues: list[str] = Field(default_factory=list, description="Failed rule descriptions")
    checked_clusters: list[str] = Field(
        default_factory=list, description="Cluster ids inspected by the checks"
    )
