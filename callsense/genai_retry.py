"""
callsense/genai_retry.py
=========================
Retry utility for generative-AI calls — CallSense

Wraps a zero-argument callable and retries it when the inference API
answers with an internal server error (HTTP 500). Every other failure,
including rate limits, is re-raised immediately so the caller can show
the right message to the user.

Usage::

    from callsense.genai_retry import call_with_retry

    response = call_with_retry(
        lambda: client.chat.completions.create(model=..., messages=[...]),
    )

Back-off is linear: 2 s, 4 s, 6 s for the default of three retries.

This module does NOT:
    - Create or manage API client instances
    - Retry on 429 (quota) or 4xx client errors
    - Store data
"""

import logging
import time
from typing import Any, Callable, TypeVar

logger = logging.getLogger("callsense.genai_retry")

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES: int = 3          # total attempts = MAX_RETRIES + 1 (initial)
DELAY_STEP: float = 2.0       # seconds added per consumed retry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def is_internal_error(exc: Exception) -> bool:
    """Return True if the exception is an HTTP 500 from the inference API."""
    if getattr(exc, "status_code", None) == 500 or getattr(exc, "status", None) == 500:
        return True

    # Error payloads shaped like {"error": {"code": 500, ...}}
    body = getattr(exc, "body", None) or getattr(exc, "error", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("code") == 500:
            return True

    return "500" in str(exc)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def call_with_retry(
    fn: Callable[[], T],
    retries: int = MAX_RETRIES,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Call ``fn()`` and retry on internal server errors.

    The delay before each retry is ``(MAX_RETRIES + 1 - retries_left) * DELAY_STEP``
    seconds, so the waits grow linearly and the total wait is capped.

    Args:
        fn:      Zero-argument callable performing the API request.
        retries: Number of retries allowed after the first attempt.
        sleep:   Sleep function (injectable for tests).

    Returns:
        Whatever ``fn`` returns.

    Raises:
        The original exception if it is not a 500, or the last 500 once
        retries are exhausted.
    """
    retries_left = retries

    while True:
        try:
            return fn()
        except Exception as exc:
            if retries_left <= 0 or not is_internal_error(exc):
                raise

            delay = (retries + 1 - retries_left) * DELAY_STEP
            logger.warning(
                "Inference API 500 error, retrying in %.0fs (%d attempts left): %s",
                delay,
                retries_left,
                exc,
            )
            sleep(delay)
            retries_left -= 1
