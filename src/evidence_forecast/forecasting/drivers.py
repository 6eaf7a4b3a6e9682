"""Driver selection at finalization, with keyword-based fallbacks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from evidence_forecast.constants import MAX_DRIVERS, MIN_DRIVERS
from evidence_forecast.exceptions import ExternalCallFailure
from evidence_forecast.providers.calls import guarded_call

if TYPE_CHECKING:
    from evidence_forecast.config import ForecastConfig
    from evidence_forecast.providers.llm import DriverGenerator

    from .state import ForecastState

logger = structlog.get_logger()

# (keywords, drivers); first match wins.
_FALLBACK_DRIVERS: list[tuple[tuple[str, ...], list[str]]] = [
    (
        ("election", "political", "vote", "senate", "president"),
        ["Polling data", "Economic conditions", "Campaign activity", "Voter turnout"],
    ),
    (
        ("bitcoin", "crypto", "ethereum", "token"),
        [
            "Regulatory environment",
            "Institutional adoption",
            "Market sentiment",
            "Technical development",
        ],
    ),
    (
        ("ai", "artificial intelligence", "technology", "model"),
        [
            "Research breakthroughs",
            "Compute scaling",
            "Regulatory frameworks",
            "Investment funding",
        ],
    ),
    (
        ("climate", "environment", "emissions", "temperature"),
        [
            "Policy changes",
            "Technology adoption",
            "Economic incentives",
            "International cooperation",
        ],
    ),
]
_GENERIC_DRIVERS = [
    "Market conditions",
    "Regulatory environment",
    "Public sentiment",
    "Economic factors",
]


def fallback_drivers(question: str) -> list[str]:
    """Generic drivers chosen by question keywords, used when generation fails."""
    words = set(question.lower().replace("?", " ").replace(",", " ").split())
    text = question.lower()
    for keywords, drivers in _FALLBACK_DRIVERS:
        # Single-word keywords match whole words so "ai" does not match "rain".
        if any((k in words) if " " not in k else (k in text) for k in keywords):
            return list(drivers)
    return list(_GENERIC_DRIVERS)


def normalize_drivers(drivers: list[str]) -> list[str]:
    """Strip, de-duplicate and cap driver labels, preserving order."""
    seen: set[str] = set()
    cleaned: list[str] = []
    for label in drivers:
        label = label.strip()
        if not label or label.lower() in seen:
            continue
        seen.add(label.lower())
        cleaned.append(label)
    return cleaned[:MAX_DRIVERS]


async def select_drivers(
    state: ForecastState,
    generator: DriverGenerator | None,
    *,
    config: ForecastConfig,
) -> list[str]:
    """Compute the finalized driver list once, from the finalized evidence and market snapshot."""
    if generator is None:
        return fallback_drivers(state.question)

    ranked_ids = sorted(
        state.influence, key=lambda eid: abs(state.influence[eid].log_lr), reverse=True
    )
    evidence = [e for e in (state.store.get(eid) for eid in ranked_ids) if e is not None]

    try:
        drivers = await guarded_call(
            "drivers",
            lambda: generator.generate(
                question=state.question,
                market_prob=state.market_prob,
                evidence=evidence,
            ),
            timeout_seconds=config.call_timeout_seconds,
            retry_delay_seconds=config.retry_delay_seconds,
        )
    except ExternalCallFailure as e:
        logger.warning("driver_generation_failed", error=str(e))
        return fallback_drivers(state.question)

    drivers = normalize_drivers(drivers)
    if len(drivers) < MIN_DRIVERS:
        logger.info("driver_generation_too_few", count=len(drivers))
        return fallback_drivers(state.question)
    return drivers
