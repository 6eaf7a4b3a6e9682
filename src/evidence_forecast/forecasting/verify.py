"""Rule-based verification for finalized forecasting sessions.

Verification is non-agentic:
- Schema validation via Pydantic catches out-of-range fields at construction
- Rule-based checks enforce the cross-record invariants a single model cannot see
- No LLM calls
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from evidence_forecast.constants import DEFAULT_PROBABILITY_EPSILON, MAX_DRIVERS, MIN_DRIVERS

from .schemas import VerificationReport

if TYPE_CHECKING:
    from .state import ForecastState


def _sign(x: float) -> int:
    return (x > 0) - (x < 0)


def verify_forecast(
    state: ForecastState, *, eps: float = DEFAULT_PROBABILITY_EPSILON
) -> VerificationReport:
    """Run rule-based verification on a ForecastState.

    Checks:
    - session reached FINALIZED
    - posterior probabilities are finite and clamped to [eps, 1 - eps]
    - every cluster satisfies 1 <= mEff <= n
    - exactly one influence item per current evidence item
    - sign(logLR) == sign(deltaPP) == sign(polarity)
    - 3-5 drivers
    - at least one critique cycle ran without the fallback

    Args:
        state: Session state to verify
        eps: Probability clamp used by the session

    Returns:
        VerificationReport with pass/fail status and issues list
    """
    issues: list[str] = []
    checked_clusters: list[str] = []

    # Check 1: Lifecycle
    if not state.is_finalized:
        issues.append(f"Session not finalized (phase={state.phase.value})")

    # Check 2: Probability range
    for name, p in (("p_neutral", state.p_neutral), ("p_aware", state.p_aware)):
        if p is None:
            continue
        if not math.isfinite(p) or not (eps <= p <= 1.0 - eps):
            issues.append(f"{name} out of range: {p} (expected {eps}..{1.0 - eps})")

    # Check 3: Cluster bounds
    for cluster_id, meta in state.clusters.items():
        checked_clusters.append(cluster_id)
        if not (1.0 <= meta.m_eff <= meta.size):
            issues.append(
                f"Cluster {cluster_id}: mEff={meta.m_eff:.3f} outside [1, {meta.size}]"
            )

    # Check 4: Influence coverage
    evidence_ids = {e.id for e in state.store}
    influence_ids = set(state.influence)
    for missing in sorted(evidence_ids - influence_ids):
        issues.append(f"Evidence {missing} has no influence item")
    for stale in sorted(influence_ids - evidence_ids):
        issues.append(f"Influence item {stale} refers to removed or unknown evidence")

    # Check 5: Sign agreement
    for item in state.store:
        influence = state.influence.get(item.id)
        if influence is None:
            continue
        signs = {_sign(item.polarity), _sign(influence.log_lr), _sign(influence.delta_pp)}
        if len(signs) > 1:
            issues.append(
                f"Evidence {item.id}: sign mismatch (polarity={item.polarity}, "
                f"logLR={influence.log_lr:.4f}, deltaPP={influence.delta_pp:.4f})"
            )

    # Check 6: Driver count
    if state.is_finalized and not (MIN_DRIVERS <= len(state.drivers) <= MAX_DRIVERS):
        issues.append(
            f"Expected {MIN_DRIVERS}-{MAX_DRIVERS} drivers, found {len(state.drivers)}"
        )

    # Check 7: Degraded analysis
    if state.iteration > 0 and state.degraded_cycles >= state.iteration:
        issues.append("Every critique cycle used the fallback critique (degraded analysis)")

    return VerificationReport(
        passed=not issues,
        issues=issues,
        checked_clusters=checked_clusters,
    )
