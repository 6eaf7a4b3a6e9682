"""CLI commands for running and inspecting forecasting sessions."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from evidence_forecast.cli.utils import console, load_evidence_file, run_async
from evidence_forecast.constants import DEFAULT_PRIOR

if TYPE_CHECKING:
    from evidence_forecast.config import ForecastConfig
    from evidence_forecast.forecasting import (
        Evidence,
        ForecastSnapshot,
        ForecastState,
        MarketReference,
        VerificationReport,
    )
    from evidence_forecast.providers.llm import ProviderBundle


def _resolve_config(max_iterations: int | None) -> ForecastConfig:
    from evidence_forecast.config import ForecastConfig

    try:
        config = ForecastConfig.from_env()
        if max_iterations is not None:
            config = dataclasses.replace(config, max_iterations=max_iterations)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None
    return config


def _resolve_providers(backend: str | None, config: ForecastConfig) -> ProviderBundle:
    from evidence_forecast.providers.llm import get_backend

    try:
        return get_backend(backend, config=config)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from None


async def _execute_forecast(
    *,
    question: str,
    market: MarketReference,
    initial_evidence: list[Evidence] | None,
    providers: ProviderBundle,
    config: ForecastConfig,
    with_report: bool,
) -> tuple[ForecastState, str | None]:
    """Run the critique loop and (optionally) the report writer."""
    from evidence_forecast.forecasting import CritiqueController
    from evidence_forecast.forecasting.report import write_report

    controller = CritiqueController(
        critic=providers.critic,
        evidence_source=providers.evidence_source,
        driver_generator=providers.drivers,
        config=config,
    )
    state = await controller.run(
        question=question,
        market=market,
        initial_evidence=initial_evidence,
    )
    report = None
    if with_report:
        report = await write_report(state, providers.reporter, config=config)
    return state, report


def _influence_rows(state: ForecastState) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for item in sorted(state.influence.values(), key=lambda i: i.delta_pp, reverse=True):
        evidence = state.store.get(item.evidence_id)
        rows.append(
            {
                "evidenceId": item.evidence_id,
                "clusterId": item.cluster_id,
                "logLR": item.log_lr,
                "deltaPP": item.delta_pp,
                "claim": evidence.claim if evidence else "",
            }
        )
    return rows


def _render_snapshot(snapshot: ForecastSnapshot, *, title: str = "Forecast") -> None:
    p_aware = f"{snapshot.p_aware * 100:.1f}%" if snapshot.p_aware is not None else "n/a"
    console.print(
        Panel(
            f"[bold]{escape(snapshot.question)}[/bold]\n"
            f"[bold]Prior:[/bold] {snapshot.p0 * 100:.1f}%\n"
            f"[bold]Neutral:[/bold] {snapshot.p_neutral * 100:.1f}%\n"
            f"[bold]Market-aware:[/bold] {p_aware}\n"
            f"[bold]Evidence:[/bold] {snapshot.evidence_count} in "
            f"{snapshot.cluster_count} clusters | Iterations: {snapshot.iteration}"
            + (" [red](degraded)[/red]" if snapshot.degraded else ""),
            title=title,
        )
    )
    if snapshot.drivers:
        console.print("[bold]Key drivers:[/bold] " + escape(", ".join(snapshot.drivers)))
    for issue in snapshot.confidence_issues:
        console.print(f"[yellow]Caveat:[/yellow] {escape(issue)}")


def _render_influence_table(rows: list[dict[str, Any]]) -> None:
    if not rows:
        console.print("[yellow]No evidence.[/yellow]")
        return

    table = Table(title="Evidence Influence")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Cluster", style="blue")
    table.add_column("ΔPP", justify="right")
    table.add_column("Claim", style="white")

    for row in rows:
        claim = row["claim"]
        if len(claim) > 80:
            claim = claim[:77] + "..."
        delta = row["deltaPP"]
        color = "green" if delta > 0 else "red" if delta < 0 else "dim"
        table.add_row(
            row["evidenceId"],
            row["clusterId"],
            f"[{color}]{delta:+.1f}[/{color}]",
            escape(claim),
        )

    console.print(table)


def _render_verification(verification: VerificationReport) -> None:
    if verification.passed:
        console.print("[green]✓[/green] Verification passed")
        return
    console.print("[red]✗[/red] Verification failed:")
    for issue in verification.issues:
        console.print(f"  - {escape(issue)}")


def run(
    question: Annotated[str, typer.Argument(help="Binary forecasting question.")],
    evidence_file: Annotated[
        Path | None,
        typer.Option(
            "--evidence",
            "-f",
            help="JSON file with the seed evidence batch. When omitted, evidence is gathered "
            "from the backend's evidence source.",
        ),
    ] = None,
    prior: Annotated[
        float, typer.Option("--prior", min=0.0, max=1.0, help="Prior probability p0.")
    ] = DEFAULT_PRIOR,
    market_prob: Annotated[
        float | None,
        typer.Option("--market-prob", min=0.0, max=1.0, help="Market-implied probability."),
    ] = None,
    backend: Annotated[
        str | None,
        typer.Option(
            "--backend",
            help="Provider backend (anthropic|mock). Defaults to FORECAST_LLM_BACKEND.",
            show_default=False,
        ),
    ] = None,
    max_iterations: Annotated[
        int | None,
        typer.Option("--max-iterations", min=1, help="Critique cycle ceiling."),
    ] = None,
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
    report_file: Annotated[
        Path | None, typer.Option("--report", help="Write a Markdown report to this file.")
    ] = None,
    save: Annotated[
        bool, typer.Option("--save", help="Persist the finalized snapshot.")
    ] = False,
    sessions_dir: Annotated[
        Path | None,
        typer.Option("--sessions-dir", help="Snapshot directory (default: data/forecasts)."),
    ] = None,
) -> None:
    """Run a forecasting session and print the finalized forecast."""
    from evidence_forecast.exceptions import ForecastError
    from evidence_forecast.forecasting import (
        ForecastSessionStore,
        MarketReference,
        verify_forecast,
    )

    config = _resolve_config(max_iterations)
    providers = _resolve_providers(backend, config)
    initial_evidence = load_evidence_file(evidence_file) if evidence_file else None

    if providers.backend == "mock" and not output_json:
        console.print(
            "[yellow]Warning:[/yellow] Using mock providers. "
            "Set FORECAST_LLM_BACKEND=anthropic for real analysis."
        )

    try:
        state, report = run_async(
            _execute_forecast(
                question=question,
                market=MarketReference(p0=prior, market_prob=market_prob),
                initial_evidence=initial_evidence,
                providers=providers,
                config=config,
                with_report=report_file is not None,
            )
        )
    except ForecastError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    snapshot = state.snapshot()
    verification = verify_forecast(state, eps=config.epsilon)
    rows = _influence_rows(state)

    session_id = None
    if save:
        session_id = ForecastSessionStore(sessions_dir).save(snapshot)

    if report_file is not None and report is not None:
        report_file.parent.mkdir(parents=True, exist_ok=True)
        report_file.write_text(report, encoding="utf-8")

    if output_json:
        output = {
            "snapshot": snapshot.model_dump(mode="json", by_alias=True),
            "influence": rows,
            "verification": verification.model_dump(mode="json"),
            "sessionId": session_id,
        }
        typer.echo(json.dumps(output, indent=2))
        return

    _render_snapshot(snapshot)
    _render_influence_table(rows)
    _render_verification(verification)
    if report_file is not None:
        console.print(f"[green]✓[/green] Report written to {report_file}")
    if session_id is not None:
        console.print(f"[green]✓[/green] Saved session {session_id}")


def show(
    session_id: Annotated[str, typer.Argument(help="Session id printed by `run --save`.")],
    output_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
    sessions_dir: Annotated[
        Path | None,
        typer.Option("--sessions-dir", help="Snapshot directory (default: data/forecasts)."),
    ] = None,
) -> None:
    """Show a saved forecast snapshot."""
    from evidence_forecast.forecasting import ForecastSessionStore

    snapshot = ForecastSessionStore(sessions_dir).load(session_id)
    if snapshot is None:
        console.print(f"[red]Error:[/red] Session not found: {escape(session_id)}")
        raise typer.Exit(1)

    if output_json:
        typer.echo(snapshot.model_dump_json(by_alias=True, indent=2))
        return
    _render_snapshot(snapshot, title=f"Session {session_id}")
