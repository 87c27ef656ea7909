"""Retry delay policy for failed background jobs."""

from __future__ import annotations

from datetime import timedelta

_BASE_DELAY_SECONDS = 5.0
_MAX_DELAY_SECONDS = 300.0


def compute_retry_delay(attempt: int) -> timedelta:
    """Return exponential backoff for the given 1-based retry attempt, capped at five minutes."""

    if attempt < 1:
        raise ValueError("attempt must be >= 1")

    seconds = _BASE_DELAY_SECONDS * (2 ** (attempt - 1))
    return timedelta(seconds=min(seconds, _MAX_DELAY_SECONDS))
