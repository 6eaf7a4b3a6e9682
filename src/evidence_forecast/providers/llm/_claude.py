"""Claude (Anthropic) implementations of the critic, search, driver and report services."""

from __future__ import annotations

import hashlib
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import structlog

from evidence_forecast.constants import DEFAULT_MODEL, DEFAULT_MODEL_SMALL
from evidence_forecast.forecasting.report import format_catalog, format_pct
from evidence_forecast.forecasting.schemas import Critique, Evidence

from ._client import AnthropicClient, ToolCaller, resolve_client
from ._prompts import (
    CRITIC_PROMPT_TEMPLATE,
    CRITIC_SYSTEM_PROMPT,
    DRIVERS_PROMPT_TEMPLATE,
    DRIVERS_SYSTEM_PROMPT,
    REPORT_PROMPT_TEMPLATE,
    REPORT_SYSTEM_PROMPT,
    SEARCH_PROMPT_TEMPLATE,
    SEARCH_SYSTEM_PROMPT,
)
from ._schemas import DriversToolInput, EvidenceDraft, EvidenceToolInput

if TYPE_CHECKING:
    from evidence_forecast.forecasting.report import ReportContext
    from evidence_forecast.forecasting.schemas import SearchSide

logger = structlog.get_logger()


def _format_evidence_list(items: list[Evidence], *, limit: int = 40) -> str:
    if not items:
        return "(none)"
    return "\n".join(
        f"- {e.id} (origin={e.origin_id}, type {e.type.value}): {e.claim}" for e in items[:limit]
    )


def _parse_published(raw: str | None) -> datetime | None:
    """Parse an ISO date/datetime, treating anything unparseable as unknown."""
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def evidence_id_for(draft: EvidenceDraft) -> str:
    """Stable id for an extracted claim, so re-reported claims collapse to the same id."""
    digest = hashlib.sha1(
        f"{draft.origin_id.strip().lower()}|{draft.claim.strip().lower()}".encode()
    ).hexdigest()
    return f"e{digest[:10]}"


class ClaudeCritic:
    """Critic using Anthropic Claude with tool-based structured outputs."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 2048,
        api_key: str | None = None,
        client: AnthropicClient | None = None,
    ) -> None:
        self._caller = ToolCaller(
            resolve_client(client, api_key), model=model, max_tokens=max_tokens
        )

    async def critique(
        self,
        *,
        question: str,
        pro: list[Evidence],
        con: list[Evidence],
    ) -> Critique:
        prompt = CRITIC_PROMPT_TEMPLATE.format(
            question=question,
            pro_count=len(pro),
            pro=_format_evidence_list(pro),
            con_count=len(con),
            con=_format_evidence_list(con),
        )
        tool_input = await self._caller.call_tool(
            system=CRITIC_SYSTEM_PROMPT,
            prompt=prompt,
            tool_name="submit_critique",
            description="Submit the critique of the current evidence",
            input_schema=Critique.model_json_schema(by_alias=True),
        )
        return Critique.model_validate(tool_input)


class ClaudeEvidenceSource:
    """Evidence source that asks Claude for typed claims relevant to a query."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
        api_key: str | None = None,
        client: AnthropicClient | None = None,
    ) -> None:
        self._caller = ToolCaller(
            resolve_client(client, api_key), model=model, max_tokens=max_tokens
        )

    async def gather(
        self,
        *,
        query: str,
        side: SearchSide,
        start_date: date | None = None,
    ) -> list[Evidence]:
        prompt = SEARCH_PROMPT_TEMPLATE.format(
            query=query,
            side=side.value,
            start_date=start_date.isoformat() if start_date else "any date",
            today=datetime.now(UTC).date().isoformat(),
        )
        tool_input = await self._caller.call_tool(
            system=SEARCH_SYSTEM_PROMPT,
            prompt=prompt,
            tool_name="submit_evidence",
            description="Submit evidence items relevant to the query",
            input_schema=EvidenceToolInput.model_json_schema(by_alias=True),
        )
        parsed = EvidenceToolInput.model_validate(tool_input)

        evidence: list[Evidence] = []
        seen: set[str] = set()
        for draft in parsed.items:
            evidence_id = evidence_id_for(draft)
            if evidence_id in seen:
                continue
            seen.add(evidence_id)
            evidence.append(
                Evidence(
                    id=evidence_id,
                    claim=draft.claim,
                    polarity=draft.polarity,
                    type=draft.type,
                    verifiability=draft.verifiability,
                    corroborations_indep=draft.corroborations_indep,
                    consistency=draft.consistency,
                    published_at=_parse_published(draft.published_at),
                    urls=draft.urls,
                    origin_id=draft.origin_id.strip().lower(),
                )
            )

        logger.debug("evidence_gathered", query=query, side=side.value, count=len(evidence))
        return evidence


class ClaudeDriverGenerator:
    """Driver generator using the small Claude model."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL_SMALL,
        max_tokens: int = 512,
        api_key: str | None = None,
        client: AnthropicClient | None = None,
    ) -> None:
        self._caller = ToolCaller(
            resolve_client(client, api_key), model=model, max_tokens=max_tokens
        )

    async def generate(
        self,
        *,
        question: str,
        market_prob: float | None,
        evidence: list[Evidence],
    ) -> list[str]:
        prompt = DRIVERS_PROMPT_TEMPLATE.format(
            question=question,
            market_price=format_pct(market_prob),
            evidence=_format_evidence_list(evidence, limit=8),
        )
        tool_input = await self._caller.call_tool(
            system=DRIVERS_SYSTEM_PROMPT,
            prompt=prompt,
            tool_name="submit_drivers",
            description="Submit the key drivers for this market",
            input_schema=DriversToolInput.model_json_schema(),
        )
        parsed = DriversToolInput.model_validate(tool_input)
        logger.debug("drivers_generated", drivers=parsed.drivers, reasoning=parsed.reasoning)
        return parsed.drivers


class ClaudeReporter:
    """Narrative Markdown reporter using the small Claude model."""

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL_SMALL,
        max_tokens: int = 4096,
        api_key: str | None = None,
        client: AnthropicClient | None = None,
    ) -> None:
        self._caller = ToolCaller(
            resolve_client(client, api_key), model=model, max_tokens=max_tokens
        )

    async def report(self, *, context: ReportContext) -> str:
        prompt = REPORT_PROMPT_TEMPLATE.format(
            question=context.question,
            p_neutral_pct=format_pct(context.p_neutral),
            p_aware_pct=format_pct(context.p_aware),
            p0_pct=format_pct(context.p0),
            verdict=context.verdict,
            confidence_pct=f"{context.confidence_pct:.1f}%",
            drivers="; ".join(context.drivers) or "none",
            catalog=format_catalog(context),
        )
        return await self._caller.complete_text(system=REPORT_SYSTEM_PROMPT, prompt=prompt)
