from __future__ import annotations

import logging
import time
from typing import Callable, Optional, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


def is_transient_http_error(exc: Exception) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return False


def call_with_retry(
    operation: Callable[[], T],
    *,
    description: str,
    attempts: int = 3,
    initial_delay: float = 2.0,
    multiplier: float = 2.0,
    is_transient: Callable[[Exception], bool] = is_transient_http_error,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation`` and retry transient failures with exponential backoff.

    Non-transient exceptions propagate on the first failure. When every attempt fails the
    last transient exception is re-raised for the caller to translate.
    """
    max_attempts = max(attempts, 1)
    delay = max(initial_delay, 0.0)
    last_error: Optional[Exception] = None
    for attempt in range(1, max_attempts + 1):
        try:
            return operation()
        except Exception as exc:
            if not is_transient(exc):
                raise
            last_error = exc
            if attempt == max_attempts:
                break
            logger.warning(
                "%s failed (attempt %s/%s), retrying in %.1fs: %s",
                description,
                attempt,
                max_attempts,
                delay,
                exc,
            )
            sleep(delay)
            delay *= multiplier
    assert last_error is not None
    raise last_error
