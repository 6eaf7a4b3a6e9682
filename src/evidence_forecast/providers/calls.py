"""Timeout and single-retry guard for external service calls."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from evidence_forecast.constants import (
    DEFAULT_CALL_TIMEOUT_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
    EXTERNAL_CALL_ATTEMPTS,
)
from evidence_forecast.exceptions import ExternalCallFailure, ExternalCallTimeout

logger = structlog.get_logger()

T = TypeVar("T")


async def _attempt(
    service: str,
    call: Callable[[], Awaitable[T]],
    timeout_seconds: float,
) -> T:
    """Run one attempt, normalizing every failure to ExternalCallFailure."""
    try:
        return await asyncio.wait_for(call(), timeout=timeout_seconds)
    except TimeoutError:
        raise ExternalCallTimeout(service, timeout_seconds) from None
    except ExternalCallFailure:
        raise
    except Exception as e:
        raise ExternalCallFailure(service, f"{type(e).__name__}: {e}") from e


async def guarded_call(
    service: str,
    call: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float = DEFAULT_CALL_TIMEOUT_SECONDS,
    retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
) -> T:
    """Invoke an external service with a per-attempt timeout and at most one retry.

    Args:
        service: Service label used in logs and errors (e.g., "critic")
        call: Zero-argument factory returning a fresh awaitable per attempt
        timeout_seconds: Per-attempt timeout
        retry_delay_seconds: Delay before the single retry

    Returns:
        The call's result

    Raises:
        ExternalCallFailure: If both attempts fail (ExternalCallTimeout on a final timeout)
    """
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(ExternalCallFailure),
        stop=stop_after_attempt(EXTERNAL_CALL_ATTEMPTS),
        wait=wait_fixed(retry_delay_seconds),
        reraise=True,
    ):
        with attempt:
            if attempt.retry_state.attempt_number > 1:
                logger.info("external_call_retry", service=service)
            return await _attempt(service, call, timeout_seconds)

    raise AssertionError("AsyncRetrying should have returned or raised")  # pragma: no cover
