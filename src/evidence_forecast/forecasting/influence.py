"""Influence calculator: evidence item -> discounted log-likelihood-ratio contribution."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from evidence_forecast.constants import (
    DEFAULT_PROBABILITY_EPSILON,
    EVIDENCE_TYPE_WEIGHTS,
    VERIFIABILITY_FLOOR,
)
from evidence_forecast.exceptions import MissingClusterError

from .aggregate import clamp_probability, logit, sigmoid
from .schemas import InfluenceItem

if TYPE_CHECKING:
    from .schemas import ClusterMeta, Evidence


def corroboration_factor(corroborations_indep: int) -> float:
    """Diminishing-returns boost for independent corroboration (1.0 when uncorroborated)."""
    # math.log accepts ints of any size; log1p would convert to float first.
    return 1.0 + math.log(1 + corroborations_indep)


def undiscounted_log_lr(evidence: Evidence) -> float:
    """Signed logLR of an item as if it were the only member of its cluster."""
    if evidence.polarity == 0:
        return 0.0
    magnitude = (
        abs(evidence.polarity)
        * EVIDENCE_TYPE_WEIGHTS[evidence.type.value]
        * (VERIFIABILITY_FLOOR + (1.0 - VERIFIABILITY_FLOOR) * evidence.verifiability)
        * corroboration_factor(evidence.corroborations_indep)
    )
    return math.copysign(magnitude, evidence.polarity)


def cluster_share(cluster: ClusterMeta) -> float:
    """Fraction of undiscounted weight each member keeps: ``mEff / n``."""
    return cluster.m_eff / cluster.size


def delta_pp(p0: float, log_lr: float, *, eps: float = DEFAULT_PROBABILITY_EPSILON) -> float:
    """Percentage-point shift from ``p0`` if this item were the only evidence.

    Reporting approximation only; it is not additive across items. Uses the exact form
    ``p(1 - p)(e^x - 1) / (1 + p(e^x - 1))`` so tiny ``log_lr`` values keep their sign.
    """
    if log_lr == 0:
        return 0.0
    prior = clamp_probability(p0, eps)
    try:
        growth = math.expm1(log_lr)
    except OverflowError:
        return 100.0 * (sigmoid(logit(prior) + log_lr) - prior)
    shift = growth * (prior * (1.0 - prior) / (1.0 + prior * growth)) * 100.0
    if shift == 0.0:
        # Underflowed below the smallest float; keep the sign.
        return math.copysign(math.ulp(0.0), log_lr)
    return shift


def compute_influence(
    evidence: Iterable[Evidence],
    clusters: Mapping[str, ClusterMeta],
    p0: float,
    *,
    eps: float = DEFAULT_PROBABILITY_EPSILON,
) -> dict[str, InfluenceItem]:
    """Compute one InfluenceItem per evidence item, discounted by its cluster's correlation.

    A cluster of ``n`` members with effective count ``mEff`` contributes the sum of its
    members' undiscounted weights scaled by ``mEff / n``.

    Adding a same-direction item to an existing cluster recomputes that cluster's ``rho``
    and ``mEff / n`` for every member, so it can lower the posterior. Monotonic growth of
    ``p_neutral`` under added pro evidence holds only for items from a new origin.

    Raises:
        MissingClusterError: If an item's origin has no computed cluster.
    """
    influence: dict[str, InfluenceItem] = {}
    for item in evidence:
        cluster = clusters.get(item.origin_id)
        if cluster is None:
            raise MissingClusterError(item.id, item.origin_id)

        log_lr = undiscounted_log_lr(item) * cluster_share(cluster)
        influence[item.id] = InfluenceItem(
            evidence_id=item.id,
            log_lr=log_lr,
            delta_pp=delta_pp(p0, log_lr, eps=eps),
            cluster_id=cluster.cluster_id,
        )
    return influence
