"""Posterior aggregation in log-odds space.

    p_neutral = clamp(sigmoid(logit(p0) + sum(logLR)), eps, 1 - eps)

Evidence contributions are additive only in log-odds space; the per-item ``deltaPP`` values are
never summed to produce the posterior.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from evidence_forecast.constants import DEFAULT_MARKET_BLEND_WEIGHT, DEFAULT_PROBABILITY_EPSILON

if TYPE_CHECKING:
    from .schemas import InfluenceItem


def clamp_probability(p: float, eps: float = DEFAULT_PROBABILITY_EPSILON) -> float:
    """Clamp ``p`` into ``[eps, 1 - eps]``."""
    if math.isnan(p):
        raise ValueError("probability is NaN")
    return min(1.0 - eps, max(eps, p))


def logit(p: float) -> float:
    # Contract: p must be in (0,1). Callers clamp first.
    return math.log(p / (1.0 - p))


def sigmoid(x: float) -> float:
    """Numerically stable logistic function."""
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


@dataclass(frozen=True)
class PosteriorResult:
    """Output of one aggregation pass."""

    p_neutral: float
    p_aware: float | None
    prior_log_odds: float
    total_log_lr: float


def total_log_lr(influence: Iterable[InfluenceItem]) -> float:
    """Sum contributions in a fixed order so repeated runs are bit-identical."""
    ordered = sorted(influence, key=lambda item: item.evidence_id)
    return math.fsum(item.log_lr for item in ordered)


def blend_with_market(
    p_neutral: float,
    market_prob: float,
    *,
    weight: float = DEFAULT_MARKET_BLEND_WEIGHT,
    eps: float = DEFAULT_PROBABILITY_EPSILON,
) -> float:
    """Weighted geometric mean of the two probabilities in odds space."""
    if not (0.0 <= weight <= 1.0):
        raise ValueError(f"blend weight must be within [0, 1], got {weight}")
    blended = (1.0 - weight) * logit(clamp_probability(p_neutral, eps)) + weight * logit(
        clamp_probability(market_prob, eps)
    )
    return clamp_probability(sigmoid(blended), eps)


def aggregate_posterior(
    p0: float,
    influence: Iterable[InfluenceItem],
    *,
    market_prob: float | None = None,
    blend_weight: float = DEFAULT_MARKET_BLEND_WEIGHT,
    eps: float = DEFAULT_PROBABILITY_EPSILON,
) -> PosteriorResult:
    """Combine prior and evidence contributions into a posterior.

    Args:
        p0: Prior probability (clamped into ``[eps, 1 - eps]`` before conversion)
        influence: Current influence items, one per counted evidence item
        market_prob: Optional market-implied probability for the ``p_aware`` blend
        blend_weight: Market weight in the odds-space blend
        eps: Clamp bound

    Returns:
        PosteriorResult with ``p_neutral`` and, when a market probability is given, ``p_aware``
    """
    prior_log_odds = logit(clamp_probability(p0, eps))
    log_lr_sum = total_log_lr(influence)
    p_neutral = clamp_probability(sigmoid(prior_log_odds + log_lr_sum), eps)

    p_aware = None
    if market_prob is not None:
        p_aware = blend_with_market(p_neutral, market_prob, weight=blend_weight, eps=eps)

    return PosteriorResult(
        p_neutral=p_neutral,
        p_aware=p_aware,
        prior_log_odds=prior_log_odds,
        total_log_lr=log_lr_sum,
    )
