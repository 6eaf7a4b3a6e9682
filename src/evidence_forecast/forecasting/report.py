"""Narrative report context and deterministic Markdown rendering.

Report generation is a downstream consumer of a finalized session: it never feeds back into the
posterior. ``write_report`` tries the configured reporter and falls back to the template below.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlparse

import structlog

from evidence_forecast.constants import DEFAULT_REPORT_TOP_N
from evidence_forecast.exceptions import ExternalCallFailure
from evidence_forecast.providers.calls import guarded_call

if TYPE_CHECKING:
    from evidence_forecast.config import ForecastConfig
    from evidence_forecast.providers.llm import Reporter

    from .schemas import ClusterMeta, Evidence, InfluenceItem
    from .state import ForecastState

logger = structlog.get_logger()


@dataclass(frozen=True)
class ReportEntry:
    """One ranked evidence item joined with its influence and cluster metadata."""

    evidence: Evidence
    influence: InfluenceItem
    cluster: ClusterMeta | None

    @property
    def domain(self) -> str:
        if not self.evidence.urls:
            return "unknown"
        netloc = urlparse(self.evidence.urls[0]).netloc
        return netloc.removeprefix("www.") or "unknown"


@dataclass(frozen=True)
class ReportContext:
    """Everything a reporter needs from a finalized forecast."""

    question: str
    p0: float
    p_neutral: float
    p_aware: float | None
    drivers: list[str]
    entries: list[ReportEntry]
    confidence_issues: list[str] = field(default_factory=list)

    @property
    def verdict(self) -> str:
        return "YES" if self.p_neutral > 0.5 else "NO"

    @property
    def confidence_pct(self) -> float:
        return abs(self.p_neutral - 0.5) * 200


def build_report_context(
    state: ForecastState, *, top_n: int = DEFAULT_REPORT_TOP_N
) -> ReportContext:
    """Rank influence by ``deltaPP`` (descending) and join the top ``top_n`` items."""
    ranked = sorted(state.influence.values(), key=lambda item: item.delta_pp, reverse=True)
    entries: list[ReportEntry] = []
    for item in ranked[:top_n]:
        evidence = state.store.get(item.evidence_id)
        if evidence is None:
            continue
        entries.append(
            ReportEntry(
                evidence=evidence,
                influence=item,
                cluster=state.clusters.get(evidence.origin_id),
            )
        )

    return ReportContext(
        question=state.question,
        p0=state.p0,
        p_neutral=state.p_neutral,
        p_aware=state.p_aware,
        drivers=list(state.drivers),
        entries=entries,
        confidence_issues=list(state.confidence_issues),
    )


def format_pct(p: float | None) -> str:
    return "n/a" if p is None else f"{p * 100:.1f}%"


def format_catalog_line(entry: ReportEntry) -> str:
    """Single catalog line used by both the template and LLM reporters."""
    ev = entry.evidence
    sign = "+" if ev.polarity > 0 else "-" if ev.polarity < 0 else "0"
    published = ev.published_at.date().isoformat() if ev.published_at else "n/a"
    if entry.cluster is not None:
        cluster_meta = (
            f"cluster={entry.cluster.cluster_id}, rho={entry.cluster.rho:.2f}, "
            f"mEff={entry.cluster.m_eff:.2f}"
        )
    else:
        cluster_meta = "cluster=n/a"
    return (
        f"- {ev.id} | {sign} | Type {ev.type.value} | Δpp={entry.influence.delta_pp:.2f} | "
        f"logLR={entry.influence.log_lr:.3f} | ver={ev.verifiability:.2f} | "
        f"corrInd={ev.corroborations_indep} | cons={ev.consistency:.2f} | date={published} | "
        f"src={entry.domain} | {cluster_meta}\n  Claim: {ev.claim}"
    )


def format_catalog(context: ReportContext) -> str:
    if not context.entries:
        return "(no evidence counted)"
    return "\n".join(format_catalog_line(entry) for entry in context.entries)


def render_markdown_report(context: ReportContext) -> str:
    """Deterministic Markdown report built only from the finalized numbers."""
    lines = [
        f"# {context.question}",
        "",
        f"## Forecast: {context.verdict} ({format_pct(context.p_neutral)})",
        "",
        f"- Prior p0: {format_pct(context.p0)}",
        f"- Evidence-only posterior p_neutral: {format_pct(context.p_neutral)}",
        f"- Market-aware posterior p_aware: {format_pct(context.p_aware)}",
        f"- Confidence: {context.confidence_pct:.1f}%",
        "",
        "## Evidence (ranked by influence)",
        "",
        format_catalog(context),
        "",
        "## Key Drivers",
        "",
    ]
    if context.drivers:
        lines.extend(f"- {driver}" for driver in context.drivers)
    else:
        lines.append("- (none)")
    if context.confidence_issues:
        lines.extend(["", "## Caveats & Limitations", ""])
        lines.extend(f"- {issue}" for issue in context.confidence_issues)
    return "\n".join(lines) + "\n"


async def write_report(
    state: ForecastState,
    reporter: Reporter | None,
    *,
    config: ForecastConfig,
    top_n: int = DEFAULT_REPORT_TOP_N,
) -> str:
    """Generate the narrative report, falling back to the Markdown template on failure."""
    context = build_report_context(state, top_n=top_n)
    if reporter is None:
        return render_markdown_report(context)

    try:
        return await guarded_call(
            "reporter",
            lambda: reporter.report(context=context),
            timeout_seconds=config.call_timeout_seconds,
            retry_delay_seconds=config.retry_delay_seconds,
        )
    except ExternalCallFailure as e:
        logger.warning("report_generation_failed", error=str(e))
        return render_markdown_report(context)
