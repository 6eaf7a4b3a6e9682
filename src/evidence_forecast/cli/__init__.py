"""
CLI application for Evidence Forecast.

Provides commands for running, saving, and inspecting forecasting sessions.
"""

from __future__ import annotations

import typer
from dotenv import find_dotenv, load_dotenv

from evidence_forecast.cli.forecast import run, show
from evidence_forecast.cli.utils import console

app = typer.Typer(
    name="evidence-forecast",
    help="Evidence Forecast CLI - Evidence-weighted forecasts for binary questions.",
    add_completion=False,
)

app.command(name="run")(run)
app.command(name="show")(show)


@app.callback()
def main() -> None:
    """Evidence Forecast CLI."""
    load_dotenv(find_dotenv(usecwd=True))


@app.command()
def version() -> None:
    """Show version information."""
    from evidence_forecast import __version__

    console.print(f"evidence-forecast v{__version__}")


if __name__ == "__main__":
    app()
