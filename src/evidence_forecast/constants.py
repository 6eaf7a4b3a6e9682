"""Centralized policy constants for the evidence aggregation engine.

Policy-encoding literals (evidence tier weights, clamping bounds, loop ceilings) live here so
the influence calculator, aggregator, controller and CLI cannot drift apart.
"""

from __future__ import annotations

# =============================================================================
# Evidence Quality Tiers
# =============================================================================

# Fixed descending multiplier applied to an item's log-likelihood-ratio magnitude by tier.
#
# Used by:
# - forecasting/influence.py: undiscounted_log_lr()
#
# A = direct primary evidence, D = weak/secondary reporting.
EVIDENCE_TYPE_WEIGHTS: dict[str, float] = {
    "A": 1.0,
    "B": 0.7,
    "C": 0.45,
    "D": 0.25,
}

# Share of an item's weight that does not depend on verifiability.
#
# An unverifiable claim (verifiability=0) still counts at this fraction of a fully
# verifiable one.
VERIFIABILITY_FLOOR: float = 0.5

# =============================================================================
# Posterior Aggregation
# =============================================================================

# Clamp bound for all probabilities (prior, posterior, market-aware blend).
#
# Used by:
# - forecasting/aggregate.py: aggregate_posterior(), blend_with_market()
# - config.py: ForecastConfig.epsilon default
DEFAULT_PROBABILITY_EPSILON: float = 0.001

# Weight of the market-implied probability in the odds-space blend for p_aware.
#
# 0.0 ignores the market, 1.0 returns the market price unchanged.
DEFAULT_MARKET_BLEND_WEIGHT: float = 0.5

# Neutral prior used when no base rate or market price is supplied.
DEFAULT_PRIOR: float = 0.5

# =============================================================================
# Critique Loop
# =============================================================================

# Hard ceiling on completed critique cycles per session.
#
# Used by:
# - config.py: ForecastConfig.max_iterations default
# - forecasting/controller.py: CritiqueController
DEFAULT_MAX_ITERATIONS: int = 2

# Upper bound on follow-up searches a single critique may propose.
MAX_FOLLOW_UP_SEARCHES: int = 10

# Per-call timeout (seconds) for every external invocation (search, critic, drivers, report).
DEFAULT_CALL_TIMEOUT_SECONDS: float = 60.0

# Delay between the first failed attempt of an external call and its single retry.
DEFAULT_RETRY_DELAY_SECONDS: float = 1.0

# Attempts per external call: the original call plus one automatic retry.
EXTERNAL_CALL_ATTEMPTS: int = 2

# =============================================================================
# Drivers & Reporting
# =============================================================================

# Bounds on the number of driver labels attached to a finalized forecast.
MIN_DRIVERS: int = 3
MAX_DRIVERS: int = 5

# Number of most influential evidence items included in the narrative report.
DEFAULT_REPORT_TOP_N: int = 12

# =============================================================================
# LLM Defaults
# =============================================================================

DEFAULT_MODEL: str = "claude-sonnet-4-5-20250929"
DEFAULT_MODEL_SMALL: str = "claude-haiku-4-5-20251001"
