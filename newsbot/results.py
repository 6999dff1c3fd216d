"""Tagged result for calls that may silently fall back to a degraded value."""
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of an operation with a primary path and a fallback path.

    ``success`` is True when the primary path produced ``value``.
    ``degraded`` is True when ``value`` came from the fallback instead.
    """

    value: T
    success: bool = True
    degraded: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "Outcome[T]":
        return cls(value=value, success=True, degraded=False)

    @classmethod
    def fallback(cls, value: T, error: str) -> "Outcome[T]":
        return cls(value=value, success=False, degraded=True, error=error)
