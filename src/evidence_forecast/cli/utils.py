"""Shared utilities for CLI commands (console output, evidence files, async helpers)."""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, TypeVar

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.markup import escape

from evidence_forecast.forecasting.schemas import Evidence

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from pathlib import Path

console = Console()

T = TypeVar("T")

_EVIDENCE_LIST = TypeAdapter(list[Evidence])


def run_async(coro: Coroutine[object, object, T]) -> T:
    """Run a coroutine from a sync CLI command.

    Raises:
        typer.Exit: With code 130 on KeyboardInterrupt (standard SIGINT exit code).
    """
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise typer.Exit(130) from None


def load_evidence_file(path: Path) -> list[Evidence]:
    """Load a seed evidence batch from JSON.

    Accepts either a top-level list of evidence objects or an object with an ``evidence`` list.
    Exits with an error message if the file is missing, is not valid JSON, or holds evidence
    that fails validation.
    """
    if not path.exists():
        console.print(f"[red]Error:[/red] Evidence file not found: {path}")
        raise typer.Exit(1)

    try:
        with path.open(encoding="utf-8") as f:
            raw: Any = json.load(f)
    except json.JSONDecodeError:
        console.print(f"[red]Error:[/red] Evidence file is not valid JSON: {path}")
        raise typer.Exit(1) from None

    if isinstance(raw, dict):
        raw = raw.get("evidence")
    if not isinstance(raw, list):
        console.print(
            f"[red]Error:[/red] Evidence file has an unexpected schema: {path} "
            "(expected a list or an object with key 'evidence: [...]')"
        )
        raise typer.Exit(1)

    try:
        return _EVIDENCE_LIST.validate_python(raw)
    except ValidationError as e:
        console.print(f"[red]Error:[/red] Invalid evidence in {path}:")
        console.print(f"[dim]{escape(str(e))}[/dim]")
        raise typer.Exit(1) from None
