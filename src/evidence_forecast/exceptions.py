"""Exception types for the forecasting engine."""

from __future__ import annotations


class ForecastError(Exception):
    """Base exception for forecasting errors."""


class DuplicateIdError(ForecastError):
    """Evidence id already present in the session's evidence store."""

    def __init__(self, evidence_id: str) -> None:
        self.evidence_id = evidence_id
        super().__init__(f"Duplicate evidence id: {evidence_id}")


class MissingClusterError(ForecastError):
    """Evidence references an origin with no computed cluster.

    Indicates influence was calculated before clustering ran over the current evidence set.
    """

    def __init__(self, evidence_id: str, origin_id: str) -> None:
        self.evidence_id = evidence_id
        self.origin_id = origin_id
        super().__init__(
            f"No cluster computed for origin {origin_id!r} (evidence {evidence_id!r}); "
            "clustering must run before influence calculation"
        )


class InvalidTransitionError(ForecastError):
    """Critique controller attempted a transition the state machine does not allow."""

    def __init__(self, from_phase: str, to_phase: str) -> None:
        self.from_phase = from_phase
        self.to_phase = to_phase
        super().__init__(f"Invalid phase transition: {from_phase} -> {to_phase}")


class ExternalCallFailure(ForecastError):
    """An external service (critic, evidence source, generator) failed or misbehaved."""

    def __init__(self, service: str, message: str) -> None:
        self.service = service
        self.message = message
        super().__init__(f"{service} call failed: {message}")


class ExternalCallTimeout(ExternalCallFailure):
    """An external call exceeded its per-call timeout."""

    def __init__(self, service: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(service, f"timed out after {timeout_seconds:g}s")
