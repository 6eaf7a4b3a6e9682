"""Unit tests for the critique controller state machine."""

from __future__ import annotations

import asyncio

import pytest

from evidence_forecast.config import ForecastConfig
from evidence_forecast.exceptions import DuplicateIdError, InvalidTransitionError
from evidence_forecast.forecasting.controller import (
    DEGRADED_ANALYSIS_ISSUE,
    CritiqueController,
    default_critique,
    duplicate_ids_to_remove,
)
from evidence_forecast.forecasting.influence import undiscounted_log_lr
from evidence_forecast.forecasting.schemas import (
    Critique,
    FollowUpSearch,
    MarketReference,
    SearchSide,
)
from evidence_forecast.forecasting.state import ForecastState, SessionPhase
from evidence_forecast.forecasting.store import EvidenceStore
from evidence_forecast.providers.llm import MockCritic, MockDriverGenerator, MockEvidenceSource

QUESTION = "Will the measure pass by June?"


def _follow_up(query: str = "more", side: SearchSide = SearchSide.BOTH) -> FollowUpSearch:
    return FollowUpSearch(query=query, rationale="gap", side=side)


class _FailingSource:
    def __init__(self) -> None:
        self.calls = 0

    async def gather(self, *, query, side, start_date=None):
        self.calls += 1
        raise RuntimeError("search backend down")


class _SlowCritic:
    async def critique(self, *, question, pro, con):
        await asyncio.sleep(5)
        return Critique()


# ============================================================================
# Worked scenarios
# ============================================================================
@pytest.mark.asyncio
async def test_single_strong_item_raises_posterior(make_evidence, fast_config) -> None:
    evidence = make_evidence(
        "e1", 0.8, type="A", verifiability=0.9, corroborations_indep=2, origin_id="agency"
    )
    controller = CritiqueController(critic=MockCritic(), config=fast_config)

    state = await controller.run(
        question=QUESTION, market=MarketReference(p0=0.5), initial_evidence=[evidence]
    )

    assert state.phase is SessionPhase.FINALIZED
    assert state.p_neutral > 0.5
    assert state.clusters["agency"].m_eff == 1.0
    assert state.influence["e1"].delta_pp > 0


@pytest.mark.asyncio
async def test_correlated_pair_counts_little_more_than_once(make_evidence, fast_config) -> None:
    evidence = [
        make_evidence("e1", 0.6, origin_id="wire", consistency=0.9),
        make_evidence("e2", 0.6, origin_id="wire", consistency=0.9),
    ]
    controller = CritiqueController(critic=MockCritic(), config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=evidence)

    cluster = state.clusters["wire"]
    assert cluster.rho == pytest.approx(0.9)
    assert cluster.m_eff == pytest.approx(1.1)
    single = undiscounted_log_lr(evidence[0])
    combined = sum(item.log_lr for item in state.influence.values())
    assert combined == pytest.approx(1.1 * single)
    assert combined < 2 * single


@pytest.mark.asyncio
async def test_huge_corroboration_count_saturates_posterior(make_evidence, fast_config) -> None:
    evidence = make_evidence("e1", 0.5, corroborations_indep=10**400)
    controller = CritiqueController(critic=MockCritic(), config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=[evidence])

    assert state.phase is SessionPhase.FINALIZED
    assert state.p_neutral == pytest.approx(1.0 - fast_config.epsilon)
    assert state.influence["e1"].delta_pp > 0


@pytest.mark.asyncio
async def test_duplicate_flag_removes_evidence_and_reaggregates(
    make_evidence, fast_config
) -> None:
    evidence = [make_evidence("e1", 0.6), make_evidence("e2", 0.6)]
    critic = MockCritic([Critique(duplication_flags=["e2"])])
    controller = CritiqueController(critic=critic, config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=evidence)

    baseline = await CritiqueController(critic=MockCritic(), config=fast_config).run(
        question=QUESTION, initial_evidence=[make_evidence("e1", 0.6)]
    )
    assert len(state.store) == 1
    assert "e2" not in state.influence
    assert len(state.clusters) == 1
    assert state.p_neutral == pytest.approx(baseline.p_neutral)


@pytest.mark.asyncio
async def test_critic_failures_finalize_with_fallback(make_evidence, fast_config) -> None:
    critic = MockCritic([RuntimeError("critic down")] * 4)
    source = MockEvidenceSource()
    controller = CritiqueController(critic=critic, evidence_source=source, config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert state.is_finalized
    assert state.iteration == fast_config.max_iterations
    assert state.degraded_cycles == 2
    assert DEGRADED_ANALYSIS_ISSUE in state.confidence_issues
    # Default critique proposes one general follow-up search.
    assert source.queries == [(f"{QUESTION} recent news", SearchSide.BOTH)]
    # Each cycle makes the initial attempt plus one retry.
    assert len(critic.calls) == 4
    assert state.snapshot().degraded is True


# ============================================================================
# Termination and loop control
# ============================================================================
@pytest.mark.asyncio
async def test_stops_at_iteration_ceiling(make_evidence, fast_config) -> None:
    config = ForecastConfig(max_iterations=3, call_timeout_seconds=0.5, retry_delay_seconds=0.0)
    critic = MockCritic([Critique(follow_up_searches=[_follow_up()]) for _ in range(10)])
    controller = CritiqueController(
        critic=critic, evidence_source=MockEvidenceSource(), config=config
    )

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert state.iteration == 3
    assert len(critic.calls) == 3
    assert len(state.critiques) == 3


@pytest.mark.asyncio
async def test_finalizes_early_without_follow_ups(make_evidence, fast_config) -> None:
    critic = MockCritic([Critique(missing=["Nothing obvious"])])
    controller = CritiqueController(
        critic=critic, evidence_source=MockEvidenceSource(), config=fast_config
    )

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert state.iteration == 1
    assert state.finalized_at is not None


@pytest.mark.asyncio
async def test_follow_ups_skipped_without_evidence_source(make_evidence, fast_config) -> None:
    critic = MockCritic([Critique(follow_up_searches=[_follow_up()])] * 3)
    controller = CritiqueController(critic=critic, config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert state.iteration == 1
    assert state.is_finalized


@pytest.mark.asyncio
async def test_critic_timeout_uses_default_critique(make_evidence) -> None:
    config = ForecastConfig(max_iterations=1, call_timeout_seconds=0.05, retry_delay_seconds=0.0)
    controller = CritiqueController(critic=_SlowCritic(), config=config)

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert state.is_finalized
    assert state.degraded_cycles == 1
    assert state.critiques == [default_critique(QUESTION)]


# ============================================================================
# Evidence gathering
# ============================================================================
@pytest.mark.asyncio
async def test_gathers_both_sides_when_no_seed(make_evidence, fast_config) -> None:
    items = [make_evidence("e1", 0.5), make_evidence("e2", -0.5)]
    source = MockEvidenceSource({QUESTION: items})
    controller = CritiqueController(
        critic=MockCritic(), evidence_source=source, config=fast_config
    )

    state = await controller.run(question=QUESTION)

    assert sorted(source.queries) == sorted(
        [(QUESTION, SearchSide.FOR), (QUESTION, SearchSide.AGAINST)]
    )
    # Both searches returned the same items; each id is stored once.
    assert [e.id for e in state.evidence] == ["e1", "e2"]


@pytest.mark.asyncio
async def test_failed_searches_contribute_nothing(fast_config) -> None:
    source = _FailingSource()
    controller = CritiqueController(
        critic=MockCritic(), evidence_source=source, config=fast_config
    )

    state = await controller.run(question=QUESTION, market=MarketReference(p0=0.3))

    assert state.is_finalized
    assert len(state.store) == 0
    assert state.p_neutral == pytest.approx(0.3)
    # Two sides, each with one retry.
    assert source.calls == 4


@pytest.mark.asyncio
async def test_follow_up_evidence_is_added(make_evidence, fast_config) -> None:
    critic = MockCritic([Critique(follow_up_searches=[_follow_up("new polls", SearchSide.FOR)])])
    source = MockEvidenceSource({"new polls": [make_evidence("e2", 0.4)]})
    controller = CritiqueController(critic=critic, evidence_source=source, config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=[make_evidence("e1")])

    assert [e.id for e in state.evidence] == ["e1", "e2"]
    assert set(state.influence) == {"e1", "e2"}
    assert critic.calls[1]["pro"] == ["e1", "e2"]


@pytest.mark.asyncio
async def test_removed_evidence_is_not_readmitted(make_evidence, fast_config) -> None:
    critic = MockCritic(
        [Critique(duplication_flags=["e2"], follow_up_searches=[_follow_up("again")])]
    )
    source = MockEvidenceSource({"again": [make_evidence("e2"), make_evidence("e1")]})
    controller = CritiqueController(critic=critic, evidence_source=source, config=fast_config)

    state = await controller.run(
        question=QUESTION, initial_evidence=[make_evidence("e1"), make_evidence("e2")]
    )

    assert [e.id for e in state.evidence] == ["e1"]
    assert critic.calls[1]["pro"] == ["e1"]


@pytest.mark.asyncio
async def test_duplicate_seed_ids_abort_session(make_evidence, fast_config) -> None:
    controller = CritiqueController(critic=MockCritic(), config=fast_config)

    with pytest.raises(DuplicateIdError):
        await controller.run(
            question=QUESTION, initial_evidence=[make_evidence("e1"), make_evidence("e1")]
        )


# ============================================================================
# Invariants
# ============================================================================
@pytest.mark.asyncio
async def test_new_independent_pro_evidence_never_lowers_posterior(
    make_evidence, fast_config
) -> None:
    seed = [make_evidence("e1", 0.4, origin_id="a"), make_evidence("e2", -0.7, origin_id="b")]
    baseline = await CritiqueController(critic=MockCritic(), config=fast_config).run(
        question=QUESTION, initial_evidence=seed
    )

    for polarity in (0.0, 0.05, 0.9):
        critic = MockCritic([Critique(follow_up_searches=[_follow_up("extra")])])
        source = MockEvidenceSource({"extra": [make_evidence("e3", polarity, origin_id="c")]})
        state = await CritiqueController(
            critic=critic, evidence_source=source, config=fast_config
        ).run(question=QUESTION, initial_evidence=seed)
        assert state.p_neutral >= baseline.p_neutral


@pytest.mark.asyncio
async def test_correlation_adjustments_persist(make_evidence, fast_config) -> None:
    evidence = [
        make_evidence("e1", 0.5, origin_id="wire"),
        make_evidence("e2", 0.5, origin_id="wire"),
    ]
    critic = MockCritic([Critique(correlation_adjustments={"wire": 1.0})])
    controller = CritiqueController(critic=critic, config=fast_config)

    state = await controller.run(question=QUESTION, initial_evidence=evidence)

    assert state.correlation_overrides == {"wire": 1.0}
    assert state.clusters["wire"].m_eff == 1.0
    assert state.clusters["wire"].rho == 1.0


@pytest.mark.asyncio
async def test_repeated_critique_is_idempotent(make_evidence, fast_config) -> None:
    flags = Critique(
        duplication_flags=["e1,e2"],
        correlation_adjustments={"o": 0.5},
        follow_up_searches=[_follow_up()],
    )
    evidence = [
        make_evidence("e1", 0.5, origin_id="o"),
        make_evidence("e2", 0.5, origin_id="o"),
        make_evidence("e3", 0.5, origin_id="o"),
    ]
    once = await CritiqueController(
        critic=MockCritic([flags.model_copy(update={"follow_up_searches": []})]),
        config=fast_config,
    ).run(question=QUESTION, initial_evidence=evidence)
    twice = await CritiqueController(
        critic=MockCritic([flags, flags]),
        evidence_source=MockEvidenceSource(),
        config=fast_config,
    ).run(question=QUESTION, initial_evidence=evidence)

    assert [e.id for e in once.evidence] == [e.id for e in twice.evidence] == ["e1", "e3"]
    assert once.p_neutral == twice.p_neutral
    assert once.clusters == twice.clusters


@pytest.mark.asyncio
async def test_market_probability_produces_aware_posterior(make_evidence, fast_config) -> None:
    controller = CritiqueController(critic=MockCritic(), config=fast_config)

    state = await controller.run(
        question=QUESTION,
        market=MarketReference(p0=0.4, market_prob=0.4),
        initial_evidence=[make_evidence("e1", 0.9)],
    )

    assert state.p_aware is not None
    assert 0.4 < state.p_aware < state.p_neutral


@pytest.mark.asyncio
async def test_drivers_selected_at_finalization(make_evidence, fast_config) -> None:
    controller = CritiqueController(
        critic=MockCritic(),
        driver_generator=MockDriverGenerator(),
        config=fast_config,
    )

    state = await controller.run(
        question="Will bitcoin close above $100k?", initial_evidence=[make_evidence("e1")]
    )

    assert state.drivers[0] == "Regulatory environment"
    assert 3 <= len(state.drivers) <= 5
    assert state.snapshot().drivers == state.drivers


def test_illegal_transition_raises() -> None:
    controller = CritiqueController(critic=MockCritic())
    state = ForecastState(question=QUESTION, p0=0.5)

    with pytest.raises(InvalidTransitionError, match="gathering -> finalized"):
        controller._transition(state, SessionPhase.FINALIZED)


def test_duplicate_groups_keep_first_present_id(make_evidence) -> None:
    store = EvidenceStore([make_evidence(i) for i in ("e1", "e2", "e3", "e4")])

    assert duplicate_ids_to_remove(["e1, e2 | e3"], store) == ["e2", "e3"]
    assert duplicate_ids_to_remove(["e4"], store) == ["e4"]
    assert duplicate_ids_to_remove(["missing"], store) == []

    store.remove(["e1"])
    assert duplicate_ids_to_remove(["e1,e2,e3"], store) == ["e3"]


def test_single_flag_does_not_remove_group_survivor(make_evidence) -> None:
    store = EvidenceStore([make_evidence(i) for i in ("e1", "e2", "e3")])

    assert duplicate_ids_to_remove(["e1,e2", "e1"], store) == ["e2"]
    assert duplicate_ids_to_remove(["e1", "e1,e2"], store) == ["e2"]
    assert duplicate_ids_to_remove(["e1,e2", "e2,e3"], store) == ["e2"]
    assert duplicate_ids_to_remove(["e1,e2", "e3"], store) == ["e2", "e3"]
