"""Critique controller - bounded critique-then-refine loop over one forecasting session.

The controller executes a fixed state machine:

    GATHERING -> CLUSTERING -> AGGREGATING -> CRITIQUING
        -> (FOLLOWUP_GATHERING -> CLUSTERING -> ...) -> FINALIZED

External calls (evidence search, critic, driver generation) are the only suspension points.
Each is guarded by a per-call timeout with a single retry, and every failure is absorbed by a
fixed fallback, so a session always reaches FINALIZED within ``max_iterations`` critique cycles.
Internal invariant violations (duplicate ids in the seed batch, missing clusters, illegal
transitions) are not recovered and abort the session.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from evidence_forecast.config import ForecastConfig
from evidence_forecast.constants import DEFAULT_PRIOR
from evidence_forecast.exceptions import ExternalCallFailure, InvalidTransitionError
from evidence_forecast.providers.calls import guarded_call

from .aggregate import aggregate_posterior
from .clusters import build_clusters
from .drivers import select_drivers
from .influence import compute_influence
from .schemas import Critique, FollowUpSearch, SearchSide
from .state import ALLOWED_TRANSITIONS, ForecastState, SessionPhase

if TYPE_CHECKING:
    from datetime import date

    from evidence_forecast.providers.llm import Critic, DriverGenerator, EvidenceSource

    from .schemas import Evidence, MarketReference
    from .store import EvidenceStore

logger = structlog.get_logger()

DEGRADED_ANALYSIS_ISSUE = "Analysis may be incomplete due to processing error"

_ID_SEPARATORS = re.compile(r"[\s,|/]+")


def default_critique(question: str) -> Critique:
    """Fixed critique substituted when the critic fails or returns malformed output."""
    return Critique(
        missing=["Unable to complete full analysis"],
        follow_up_searches=[
            FollowUpSearch(
                query=f"{question} recent news",
                rationale="General search for recent updates",
                side=SearchSide.BOTH,
            )
        ],
        confidence_issues=[DEGRADED_ANALYSIS_ISSUE],
    )


def duplicate_ids_to_remove(flags: Iterable[str], store: EvidenceStore) -> list[str]:
    """Resolve critic duplication flags to evidence ids to drop.

    A flag naming a group keeps the first id still present in the store and removes the
    rest. A flag naming one id removes that id, unless a group in the same critique kept
    it as its surviving copy.
    """
    groups: list[list[str]] = []
    singles: list[str] = []
    for flag in flags:
        ids = [part for part in _ID_SEPARATORS.split(flag.strip()) if part]
        if len(ids) > 1:
            groups.append(ids)
        elif ids:
            singles.append(ids[0])

    to_remove: list[str] = []
    survivors: set[str] = set()
    for ids in groups:
        present = [eid for eid in ids if eid in store and eid not in to_remove]
        if present:
            survivors.add(present[0])
            to_remove.extend(eid for eid in present[1:] if eid not in survivors)
    for eid in singles:
        if eid in store and eid not in survivors and eid not in to_remove:
            to_remove.append(eid)
    return to_remove


class CritiqueController:
    """Owns one session's ForecastState and drives it to FINALIZED.

    Usage:
        controller = CritiqueController(critic=critic, evidence_source=source)
        state = await controller.run(question="Will X happen by June?", initial_evidence=items)
        snapshot = state.snapshot()
    """

    def __init__(
        self,
        *,
        critic: Critic,
        evidence_source: EvidenceSource | None = None,
        driver_generator: DriverGenerator | None = None,
        config: ForecastConfig | None = None,
    ) -> None:
        """Initialize critique controller.

        Args:
            critic: Critic service reviewing evidence each cycle
            evidence_source: Optional source for initial and follow-up evidence (if None,
                follow-up searches are skipped)
            driver_generator: Optional driver generator (if None, keyword fallbacks are used)
            config: Session configuration (iteration ceiling, blend weight, timeouts)
        """
        self.critic = critic
        self.evidence_source = evidence_source
        self.driver_generator = driver_generator
        self.config = config or ForecastConfig()

    async def run(
        self,
        *,
        question: str,
        market: MarketReference | None = None,
        initial_evidence: Iterable[Evidence] | None = None,
        start_date: date | None = None,
    ) -> ForecastState:
        """Run a full session for ``question``.

        Args:
            question: Forecasting question text
            market: Prior (and optional market-implied probability); defaults to a 0.5 prior
            initial_evidence: Seed evidence batch; when None, the evidence source is queried for
                both sides of the question
            start_date: Optional earliest publication date for searches

        Returns:
            The finalized ForecastState

        Raises:
            DuplicateIdError: If the seed batch contains repeated ids
            MissingClusterError: If influence is computed before clustering (pipeline bug)
        """
        state = ForecastState(
            question=question,
            p0=market.p0 if market else DEFAULT_PRIOR,
            market_prob=market.market_prob if market else None,
        )
        logger.info("session_started", question=question, p0=state.p0)

        # GATHERING: seed batch
        if initial_evidence is None:
            initial_evidence = await self._gather_initial(question, start_date)
        for item in initial_evidence:
            state.store.add(item)
        self._transition(state, SessionPhase.CLUSTERING)

        while True:
            self._cluster(state)
            self._transition(state, SessionPhase.AGGREGATING)

            self._aggregate(state)
            self._transition(state, SessionPhase.CRITIQUING)

            critique = await self._critique(state)
            state.iteration += 1
            pending = self._apply_critique(state, critique)

            follow_ups = critique.follow_up_searches
            if (
                follow_ups
                and self.evidence_source is not None
                and state.iteration < self.config.max_iterations
            ):
                self._transition(state, SessionPhase.FOLLOWUP_GATHERING)
                new_items = await self._gather_many(follow_ups, start_date)
                self._ingest_follow_ups(state, new_items)
                self._transition(state, SessionPhase.CLUSTERING)
                continue

            await self._finalize(state, pending=pending)
            return state

    def _transition(self, state: ForecastState, to_phase: SessionPhase) -> None:
        if to_phase not in ALLOWED_TRANSITIONS[state.phase]:
            raise InvalidTransitionError(state.phase.value, to_phase.value)
        logger.debug(
            "phase_transition",
            from_phase=state.phase.value,
            to_phase=to_phase.value,
            iteration=state.iteration,
        )
        state.phase = to_phase

    def _cluster(self, state: ForecastState) -> None:
        state.clusters = build_clusters(state.store, state.correlation_overrides)

    def _aggregate(self, state: ForecastState) -> None:
        state.influence = compute_influence(
            state.store, state.clusters, state.p0, eps=self.config.epsilon
        )
        result = aggregate_posterior(
            state.p0,
            state.influence.values(),
            market_prob=state.market_prob,
            blend_weight=self.config.market_blend_weight,
            eps=self.config.epsilon,
        )
        state.p_neutral = result.p_neutral
        state.p_aware = result.p_aware
        logger.info(
            "posterior_aggregated",
            iteration=state.iteration,
            evidence=len(state.store),
            clusters=len(state.clusters),
            p_neutral=round(result.p_neutral, 4),
        )

    async def _critique(self, state: ForecastState) -> Critique:
        partition = state.store.all()
        try:
            return await guarded_call(
                "critic",
                lambda: self.critic.critique(
                    question=state.question, pro=partition.pro, con=partition.con
                ),
                timeout_seconds=self.config.call_timeout_seconds,
                retry_delay_seconds=self.config.retry_delay_seconds,
            )
        except ExternalCallFailure as e:
            logger.warning("critic_failed_using_default", error=str(e), iteration=state.iteration)
            state.degraded_cycles += 1
            return default_critique(state.question)

    def _apply_critique(self, state: ForecastState, critique: Critique) -> bool:
        """Record the critique and stage its edits; returns True if evidence or rho changed."""
        state.critiques.append(critique)
        state.add_confidence_issues(critique.confidence_issues)

        flagged = duplicate_ids_to_remove(critique.duplication_flags, state.store)
        removed = state.store.remove(flagged)
        for evidence_id in removed:
            state.influence.pop(evidence_id, None)

        overrides_changed = any(
            state.correlation_overrides.get(cluster_id) != rho
            for cluster_id, rho in critique.correlation_adjustments.items()
        )
        state.correlation_overrides.update(critique.correlation_adjustments)

        if removed or overrides_changed:
            logger.info(
                "critique_applied",
                iteration=state.iteration,
                removed=removed,
                overrides=dict(critique.correlation_adjustments),
            )
        return bool(removed) or overrides_changed

    async def _gather_initial(self, question: str, start_date: date | None) -> list[Evidence]:
        if self.evidence_source is None:
            return []
        searches = [
            FollowUpSearch(query=question, rationale="Supporting evidence", side=SearchSide.FOR),
            FollowUpSearch(
                query=question, rationale="Contradicting evidence", side=SearchSide.AGAINST
            ),
        ]
        items = await self._gather_many(searches, start_date)
        # Pro and con searches can surface the same claim; keep the first copy.
        unique: dict[str, Evidence] = {}
        for item in items:
            unique.setdefault(item.id, item)
        return list(unique.values())

    async def _gather_many(
        self, searches: list[FollowUpSearch], start_date: date | None
    ) -> list[Evidence]:
        """Fan out searches concurrently; failed searches contribute nothing."""
        results = await asyncio.gather(
            *(self._gather_one(search, start_date) for search in searches)
        )
        return [item for batch in results for item in batch]

    async def _gather_one(self, search: FollowUpSearch, start_date: date | None) -> list[Evidence]:
        source = self.evidence_source
        if source is None:
            return []
        try:
            return await guarded_call(
                "evidence_source",
                lambda: source.gather(query=search.query, side=search.side, start_date=start_date),
                timeout_seconds=self.config.call_timeout_seconds,
                retry_delay_seconds=self.config.retry_delay_seconds,
            )
        except ExternalCallFailure as e:
            logger.warning("evidence_search_failed", query=search.query, error=str(e))
            return []

    def _ingest_follow_ups(self, state: ForecastState, items: list[Evidence]) -> None:
        added = 0
        for item in items:
            if item.id in state.store or state.store.was_removed(item.id):
                logger.debug("follow_up_evidence_skipped", evidence_id=item.id)
                continue
            state.store.add(item)
            added += 1
        logger.info("follow_up_evidence_ingested", added=added, offered=len(items))

    async def _finalize(self, state: ForecastState, *, pending: bool) -> None:
        # Settle edits from the last critique so the snapshot matches the evidence it counts.
        if pending:
            self._cluster(state)
            self._aggregate(state)

        state.drivers = await select_drivers(state, self.driver_generator, config=self.config)
        self._transition(state, SessionPhase.FINALIZED)
        state.finalized_at = datetime.now(UTC)
        logger.info(
            "session_finalized",
            iteration=state.iteration,
            p_neutral=round(state.p_neutral, 4),
            degraded_cycles=state.degraded_cycles,
        )
