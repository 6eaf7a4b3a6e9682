"""Unit tests for forecast verification."""

from __future__ import annotations

import pytest

from evidence_forecast.forecasting.controller import CritiqueController
from evidence_forecast.forecasting.schemas import ClusterMeta, InfluenceItem
from evidence_forecast.forecasting.state import ForecastState
from evidence_forecast.forecasting.verify import verify_forecast
from evidence_forecast.providers.llm import MockCritic


@pytest.mark.asyncio
async def test_verify_finalized_session_passes(make_evidence, fast_config) -> None:
    controller = CritiqueController(critic=MockCritic(), config=fast_config)
    state = await controller.run(
        question="Will it rain?",
        initial_evidence=[
            make_evidence("e1", 0.5, origin_id="a", consistency=0.4),
            make_evidence("e2", -0.3, origin_id="a", consistency=0.6),
            make_evidence("e3", 0.2, origin_id="b"),
        ],
    )

    report = verify_forecast(state)

    assert report.passed is True
    assert report.issues == []
    assert sorted(report.checked_clusters) == ["a", "b"]


def test_verify_flags_unfinalized_session() -> None:
    report = verify_forecast(ForecastState(question="Q?", p0=0.5))

    assert report.passed is False
    assert any("not finalized" in issue for issue in report.issues)


def test_verify_flags_missing_and_stale_influence(make_evidence) -> None:
    state = ForecastState(question="Q?", p0=0.5)
    state.store.add(make_evidence("e1"))
    state.influence["ghost"] = InfluenceItem(evidence_id="ghost", log_lr=0.1, delta_pp=2.0)

    report = verify_forecast(state)

    assert "Evidence e1 has no influence item" in report.issues
    assert any("ghost" in issue for issue in report.issues)


def test_verify_flags_sign_mismatch(make_evidence) -> None:
    state = ForecastState(question="Q?", p0=0.5)
    state.store.add(make_evidence("e1", polarity=-0.5))
    state.clusters["origin-e1"] = ClusterMeta(cluster_id="origin-e1", rho=0.0, m_eff=1.0, size=1)
    state.influence["e1"] = InfluenceItem(evidence_id="e1", log_lr=0.2, delta_pp=5.0)

    report = verify_forecast(state)

    assert any("sign mismatch" in issue for issue in report.issues)


def test_verify_flags_fully_degraded_analysis() -> None:
    state = ForecastState(question="Q?", p0=0.5, iteration=2, degraded_cycles=2)

    report = verify_forecast(state)

    assert any("degraded analysis" in issue for issue in report.issues)


def test_verify_flags_zero_delta_for_nonzero_log_lr(make_evidence) -> None:
    state = ForecastState(question="Q?", p0=0.5)
    state.store.add(make_evidence("e1", polarity=0.5))
    state.clusters["origin-e1"] = ClusterMeta(cluster_id="origin-e1", rho=0.0, m_eff=1.0, size=1)
    state.influence["e1"] = InfluenceItem.model_construct(
        evidence_id="e1", log_lr=0.2, delta_pp=0.0, cluster_id="origin-e1"
    )

    report = verify_forecast(state)

    assert any("sign mismatch" in issue for issue in report.issues)
