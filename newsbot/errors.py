"""Error taxonomy for upstream calls and ingestion.

Classification decides whether a failure is worth retrying:

- ``TransportFailure``: network error or timeout talking to an upstream API
- ``UpstreamOverload``: rate limit or server busy, retryable
- ``UpstreamFatal``: auth, validation or malformed response, not retryable
- ``PartialIngestFailure``: one chunk could not be embedded during ingestion
"""
from typing import Optional

import httpx

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
OVERLOAD_MARKERS = ("overloaded", "rate limit", "quota", "unavailable")


class NewsbotError(Exception):
    """Base class for all errors raised by newsbot."""


class TransportFailure(NewsbotError):
    """Network or timeout failure reaching an upstream API."""

    retryable = True


class UpstreamOverload(NewsbotError):
    """Upstream rejected the call because it is busy or rate limiting."""

    retryable = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class UpstreamFatal(NewsbotError):
    """Upstream rejected the call for a reason retrying will not fix."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PartialIngestFailure(NewsbotError):
    """A single chunk could not be embedded; ingestion carries on without it."""

    def __init__(self, chunk_id: str, reason: str):
        super().__init__(f"Chunk {chunk_id} could not be embedded: {reason}")
        self.chunk_id = chunk_id
        self.reason = reason


def classify_http_error(error: Exception) -> NewsbotError:
    """Map an httpx (or already classified) exception onto the taxonomy.

    Args:
        error: Exception raised while talking to an upstream API

    Returns:
        TransportFailure, UpstreamOverload or UpstreamFatal instance
    """
    if isinstance(error, NewsbotError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        body = error.response.text[:200]
        message = f"HTTP {status_code}: {body}"
        if status_code in RETRYABLE_STATUS_CODES or _mentions_overload(body):
            return UpstreamOverload(message, status_code=status_code)
        return UpstreamFatal(message, status_code=status_code)

    if isinstance(error, (httpx.TransportError, TimeoutError)):
        return TransportFailure(f"{type(error).__name__}: {error}")

    return UpstreamFatal(f"{type(error).__name__}: {error}")


def is_retryable(error: Exception) -> bool:
    """Return True if the failure should be retried with backoff."""
    return getattr(classify_http_error(error), "retryable", False)


def _mentions_overload(text: str) -> bool:
    lowered = text.lower()
    return any(marker in lowered for marker in OVERLOAD_MARKERS)
