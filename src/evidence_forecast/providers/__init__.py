"""External service providers (critic, evidence search, drivers, reports)."""

from .calls import guarded_call

__all__ = ["guarded_call"]
