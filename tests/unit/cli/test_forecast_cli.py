from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from evidence_forecast.cli import app

runner = CliRunner()


def _write_evidence(path: Path, items: list[dict[str, object]] | None = None) -> Path:
    items = items or [
        {
            "id": "e1",
            "claim": "Committee approved the bill 9-2",
            "polarity": 0.7,
            "type": "A",
            "verifiability": 0.9,
            "corroborationsIndep": 2,
            "publishedAt": "2025-04-02",
            "urls": ["https://www.example.com/committee"],
            "originId": "gazette",
        },
        {
            "id": "e2",
            "claim": "Two senators signaled opposition",
            "polarity": -0.3,
            "type": "C",
            "verifiability": 0.6,
            "originId": "blog",
            "publishedAt": "n/a",
        },
    ]
    path.write_text(json.dumps({"evidence": items}))
    return path


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "evidence-forecast v0.1.0" in result.stdout


def test_run_json_output(tmp_path: Path) -> None:
    evidence_file = _write_evidence(tmp_path / "evidence.json")

    result = runner.invoke(
        app,
        [
            "run",
            "Will the bill pass?",
            "--evidence",
            str(evidence_file),
            "--backend",
            "mock",
            "--market-prob",
            "0.55",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    snapshot = data["snapshot"]
    assert snapshot["question"] == "Will the bill pass?"
    assert snapshot["evidenceCount"] == 2
    assert snapshot["pNeutral"] > 0.5
    assert snapshot["pAware"] is not None
    assert data["verification"]["passed"] is True
    assert [row["evidenceId"] for row in data["influence"]] == ["e1", "e2"]
    assert data["sessionId"] is None


def test_run_human_output_writes_report_and_saves(tmp_path: Path) -> None:
    evidence_file = _write_evidence(tmp_path / "evidence.json")
    report_file = tmp_path / "out" / "report.md"
    sessions_dir = tmp_path / "sessions"

    result = runner.invoke(
        app,
        [
            "run",
            "Will the bill pass?",
            "-f",
            str(evidence_file),
            "--backend",
            "mock",
            "--report",
            str(report_file),
            "--save",
            "--sessions-dir",
            str(sessions_dir),
        ],
    )

    assert result.exit_code == 0, result.output
    assert "Using mock providers" in result.stdout
    assert "Verification passed" in result.stdout
    assert "Saved session" in result.stdout
    assert report_file.read_text().startswith("# Will the bill pass?")
    saved = list(sessions_dir.glob("*.json"))
    assert len(saved) == 1

    shown = runner.invoke(
        app, ["show", saved[0].stem, "--json", "--sessions-dir", str(sessions_dir)]
    )
    assert shown.exit_code == 0, shown.output
    assert json.loads(shown.stdout)["evidenceCount"] == 2


def test_run_without_evidence_uses_prior() -> None:
    result = runner.invoke(
        app, ["run", "Will it snow?", "--backend", "mock", "--prior", "0.3", "--json"]
    )

    assert result.exit_code == 0, result.output
    snapshot = json.loads(result.stdout)["snapshot"]
    assert snapshot["evidenceCount"] == 0
    assert snapshot["pNeutral"] == pytest.approx(0.3)


def test_run_rejects_duplicate_ids(tmp_path: Path) -> None:
    item = {
        "id": "e1",
        "claim": "x",
        "polarity": 0.5,
        "type": "B",
        "verifiability": 0.5,
        "originId": "o",
    }
    evidence_file = _write_evidence(tmp_path / "evidence.json", [item, item])

    result = runner.invoke(
        app, ["run", "Q?", "--evidence", str(evidence_file), "--backend", "mock"]
    )

    assert result.exit_code == 1
    assert "Duplicate evidence id: e1" in result.stdout


def test_run_rejects_invalid_evidence(tmp_path: Path) -> None:
    evidence_file = tmp_path / "evidence.json"
    evidence_file.write_text(json.dumps([{"id": "e1", "polarity": 3}]))

    result = runner.invoke(
        app, ["run", "Q?", "--evidence", str(evidence_file), "--backend", "mock"]
    )

    assert result.exit_code == 1
    assert "Invalid evidence" in result.stdout


def test_run_rejects_missing_evidence_file(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["run", "Q?", "--evidence", str(tmp_path / "nope.json"), "--backend", "mock"]
    )

    assert result.exit_code == 1
    assert "Evidence file not found" in result.stdout


def test_run_rejects_unknown_backend() -> None:
    result = runner.invoke(app, ["run", "Q?", "--backend", "nope"])

    assert result.exit_code == 1
    assert "Unknown LLM backend" in result.stdout


def test_run_rejects_out_of_range_prior() -> None:
    result = runner.invoke(app, ["run", "Q?", "--backend", "mock", "--prior", "1.5"])
    assert result.exit_code != 0


def test_show_missing_session(tmp_path: Path) -> None:
    result = runner.invoke(app, ["show", "missing", "--sessions-dir", str(tmp_path)])

    assert result.exit_code == 1
    assert "Session not found" in result.stdout
