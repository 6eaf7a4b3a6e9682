"""Service contracts and tool schemas for LLM-backed providers."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, ConfigDict, Field

from evidence_forecast.constants import MAX_DRIVERS, MIN_DRIVERS
from evidence_forecast.forecasting.schemas import EvidenceType

if TYPE_CHECKING:
    from evidence_forecast.forecasting.report import ReportContext
    from evidence_forecast.forecasting.schemas import Critique, Evidence, SearchSide


class EvidenceDraft(BaseModel):
    """Evidence as emitted by the extraction model (ids are assigned locally)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    claim: str = Field(min_length=1)
    polarity: float = Field(ge=-1.0, le=1.0)
    type: EvidenceType
    verifiability: float = Field(ge=0.0, le=1.0)
    corroborations_indep: int = Field(default=0, ge=0, alias="corroborationsIndep")
    consistency: float = Field(default=0.0, ge=0.0, le=1.0)
    published_at: str | None = Field(default=None, alias="publishedAt")
    urls: list[str] = Field(default_factory=list)
    origin_id: str = Field(min_length=1, alias="originId")


class EvidenceToolInput(BaseModel):
    """LLM tool output schema for evidence gathering."""

    model_config = ConfigDict(frozen=True)

    items: list[EvidenceDraft] = Field(default_factory=list, max_length=12)


class DriversToolInput(BaseModel):
    """LLM tool output schema for driver selection."""

    model_config = ConfigDict(frozen=True)

    drivers: list[str] = Field(min_length=MIN_DRIVERS, max_length=MAX_DRIVERS)
    reasoning: str = Field(default="", description="Why these drivers were chosen")


class EvidenceSource(Protocol):
    """Returns already-typed evidence for a query.

    Gathering for independent queries may run concurrently; implementations must not share
    mutable per-session state between calls.
    """

    async def gather(
        self,
        *,
        query: str,
        side: SearchSide,
        start_date: date | None = None,
    ) -> list[Evidence]:
        """Gather evidence for ``query`` targeting ``side``.

        Raises:
            RuntimeError: If the backend fails or returns a malformed response
        """
        ...


class Critic(Protocol):
    """Reviews the current evidence and proposes corrections and follow-up searches."""

    async def critique(
        self,
        *,
        question: str,
        pro: list[Evidence],
        con: list[Evidence],
    ) -> Critique:
        """Return a schema-validated critique.

        Raises:
            ValidationError: If the critic output fails Critique validation
            RuntimeError: If the call fails (e.g., API error)
        """
        ...


class DriverGenerator(Protocol):
    """Produces 3-5 short driver labels for a finalized forecast."""

    async def generate(
        self,
        *,
        question: str,
        market_prob: float | None,
        evidence: list[Evidence],
    ) -> list[str]: ...


class Reporter(Protocol):
    """Renders a human-readable narrative report from a finalized forecast."""

    async def report(self, *, context: ReportContext) -> str: ...
