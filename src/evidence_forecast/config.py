"""Session configuration for the critique controller."""

from __future__ import annotations

import os
from dataclasses import dataclass

from evidence_forecast.constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_MARKET_BLEND_WEIGHT,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MODEL,
    DEFAULT_MODEL_SMALL,
    DEFAULT_PROBABILITY_EPSILON,
    DEFAULT_RETRY_DELAY_SECONDS,
)


@dataclass(frozen=True)
class ForecastConfig:
    """Configuration passed explicitly into a CritiqueController at construction."""

    model: str = DEFAULT_MODEL
    model_small: str = DEFAULT_MODEL_SMALL
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    market_blend_weight: float = DEFAULT_MARKET_BLEND_WEIGHT
    call_timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    epsilon: float = DEFAULT_PROBABILITY_EPSILON

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if not (0.0 <= self.market_blend_weight <= 1.0):
            raise ValueError("market_blend_weight must be within [0, 1]")
        if self.call_timeout_seconds <= 0:
            raise ValueError("call_timeout_seconds must be positive")
        if self.retry_delay_seconds < 0:
            raise ValueError("retry_delay_seconds must be non-negative")
        if not (0.0 < self.epsilon < 0.5):
            raise ValueError("epsilon must be within (0, 0.5)")

    @classmethod
    def from_env(cls) -> ForecastConfig:
        """Load configuration from environment variables.

        Optional:
            FORECAST_MODEL: Model id for critique and evidence gathering
            FORECAST_MODEL_SMALL: Model id for drivers and narrative reports
            FORECAST_MAX_ITERATIONS: Critique cycle ceiling (default: 2)
            FORECAST_MARKET_BLEND_WEIGHT: Market weight in p_aware blend (default: 0.5)
            FORECAST_CALL_TIMEOUT: Per external call timeout in seconds (default: 60)
            FORECAST_RETRY_DELAY: Delay before the single retry in seconds (default: 1)
            FORECAST_EPSILON: Probability clamp bound (default: 0.001)
        """
        return cls(
            model=os.environ.get("FORECAST_MODEL", DEFAULT_MODEL),
            model_small=os.environ.get("FORECAST_MODEL_SMALL", DEFAULT_MODEL_SMALL),
            max_iterations=int(
                os.environ.get("FORECAST_MAX_ITERATIONS", str(DEFAULT_MAX_ITERATIONS))
            ),
            market_blend_weight=float(
                os.environ.get("FORECAST_MARKET_BLEND_WEIGHT", str(DEFAULT_MARKET_BLEND_WEIGHT))
            ),
            call_timeout_seconds=float(
                os.environ.get("FORECAST_CALL_TIMEOUT", str(DEFAULT_CALL_TIMEOUT_SECONDS))
            ),
            retry_delay_seconds=float(
                os.environ.get("FORECAST_RETRY_DELAY", str(DEFAULT_RETRY_DELAY_SECONDS))
            ),
            epsilon=float(os.environ.get("FORECAST_EPSILON", str(DEFAULT_PROBABILITY_EPSILON))),
        )
