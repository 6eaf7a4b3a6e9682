"""Deterministic providers for tests, CI and offline runs."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from evidence_forecast.forecasting.drivers import fallback_drivers
from evidence_forecast.forecasting.report import render_markdown_report
from evidence_forecast.forecasting.schemas import Critique

if TYPE_CHECKING:
    from datetime import date

    from evidence_forecast.forecasting.report import ReportContext
    from evidence_forecast.forecasting.schemas import Evidence, SearchSide


class MockCritic:
    """Critic that replays scripted responses.

    Each call consumes the next scripted item; an ``Exception`` instance is raised instead of
    returned. Once the script is exhausted, an empty critique (no follow-ups) is returned so the
    loop finalizes.
    """

    def __init__(self, responses: Sequence[Critique | Exception] = ()) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, object]] = []

    async def critique(
        self,
        *,
        question: str,
        pro: list[Evidence],
        con: list[Evidence],
    ) -> Critique:
        self.calls.append(
            {
                "question": question,
                "pro": [e.id for e in pro],
                "con": [e.id for e in con],
            }
        )
        if not self._responses:
            return Critique()
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class MockEvidenceSource:
    """Evidence source serving canned evidence by exact query.

    Queries without an entry return ``default`` (empty unless given).
    """

    def __init__(
        self,
        by_query: Mapping[str, Iterable[Evidence]] | None = None,
        *,
        default: Iterable[Evidence] = (),
    ) -> None:
        self._by_query = {query: list(items) for query, items in (by_query or {}).items()}
        self._default = list(default)
        self.queries: list[tuple[str, SearchSide]] = []

    async def gather(
        self,
        *,
        query: str,
        side: SearchSide,
        start_date: date | None = None,
    ) -> list[Evidence]:
        self.queries.append((query, side))
        return list(self._by_query.get(query, self._default))


class MockDriverGenerator:
    """Driver generator returning keyword-based drivers for the question."""

    async def generate(
        self,
        *,
        question: str,
        market_prob: float | None,
        evidence: list[Evidence],
    ) -> list[str]:
        return fallback_drivers(question)


class MockReporter:
    """Reporter returning the deterministic Markdown template."""

    async def report(self, *, context: ReportContext) -> str:
        return render_markdown_report(context)
