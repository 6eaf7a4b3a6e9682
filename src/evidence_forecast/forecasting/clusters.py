"""Cluster engine: group evidence by origin and estimate within-cluster correlation.

Items from the same origin are rarely independent observations. Each origin becomes one cluster
whose correlation ``rho`` is estimated from the members' ``consistency`` scores (the only
observable proxy for statistical correlation), and whose effective count ``mEff`` shrinks from
``n`` toward ``1`` as ``rho`` rises:

    mEff = clamp(1 + (n - 1) * (1 - rho), 1, n)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from statistics import fmean
from typing import TYPE_CHECKING

import structlog

from .schemas import ClusterMeta

if TYPE_CHECKING:
    from .schemas import Evidence

logger = structlog.get_logger()


def effective_count(size: int, rho: float) -> float:
    """Effective number of independent items in a cluster of ``size`` with correlation ``rho``."""
    if size < 1:
        raise ValueError("cluster size must be at least 1")
    if not (0.0 <= rho <= 1.0):
        raise ValueError(f"rho must be within [0, 1], got {rho}")
    m_eff = 1.0 + (size - 1) * (1.0 - rho)
    return min(float(size), max(1.0, m_eff))


def estimate_rho(members: list[Evidence]) -> float:
    """Estimate correlation as mean member consistency; singletons are independent."""
    if len(members) < 2:
        return 0.0
    return fmean(e.consistency for e in members)


def group_by_origin(evidence: Iterable[Evidence]) -> dict[str, list[Evidence]]:
    """Group evidence by exact ``origin_id``, preserving first-seen origin order."""
    groups: dict[str, list[Evidence]] = {}
    for item in evidence:
        groups.setdefault(item.origin_id, []).append(item)
    return groups


def build_clusters(
    evidence: Iterable[Evidence],
    overrides: Mapping[str, float] | None = None,
) -> dict[str, ClusterMeta]:
    """Compute one ClusterMeta per origin.

    Args:
        evidence: Full current evidence set
        overrides: Critique-provided replacement ``rho`` values keyed by cluster id. They replace
            the computed estimate before ``mEff`` is derived, so reapplying the same mapping
            always yields the same clusters.

    Returns:
        Mapping of cluster id (the origin id) to its ClusterMeta
    """
    overrides = overrides or {}
    clusters: dict[str, ClusterMeta] = {}

    for origin_id, members in group_by_origin(evidence).items():
        rho = estimate_rho(members)
        size = len(members)
        clusters[origin_id] = ClusterMeta(
            cluster_id=origin_id,
            rho=rho,
            m_eff=effective_count(size, rho),
            size=size,
            member_ids=tuple(e.id for e in members),
        )

    unknown = sorted(set(overrides) - set(clusters))
    if unknown:
        logger.debug("correlation_overrides_unmatched", cluster_ids=unknown)

    return apply_correlation_adjustments(clusters, overrides)


def apply_correlation_adjustments(
    clusters: Mapping[str, ClusterMeta],
    adjustments: Mapping[str, float],
) -> dict[str, ClusterMeta]:
    """Return clusters with ``rho`` replaced (and ``mEff`` recomputed) for the named ids."""
    adjusted = dict(clusters)
    for cluster_id, rho in adjustments.items():
        meta = adjusted.get(cluster_id)
        if meta is None:
            continue
        adjusted[cluster_id] = meta.model_copy(
            update={"rho": float(rho), "m_eff": effective_count(meta.size, float(rho))}
        )
    return adjusted
