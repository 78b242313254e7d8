"""Backoff-and-retry for job-board HTTP calls.

Only ingestion uses this; the scoring and extraction paths never retry.
"""
from __future__ import annotations

import functools
import random
import time
from typing import Any, Callable, Tuple, Type

import requests

from jobmatch.log import get_logger

log = get_logger(__name__)


def is_client_error(exc: BaseException) -> bool:
    """4xx responses (bad key, bad query) will not succeed on retry; 429 might."""
    response = getattr(exc, "response", None)
    if not isinstance(exc, requests.HTTPError) or response is None:
        return False
    return 400 <= response.status_code < 500 and response.status_code != 429


def _retry_after(exc: BaseException) -> float | None:
    """Seconds requested by a 429's ``Retry-After`` header, if numeric."""
    response = getattr(exc, "response", None)
    if response is None or response.status_code != 429:
        return None
    try:
        return float(response.headers.get("Retry-After", ""))
    except (TypeError, ValueError):
        return None


def backoff_delay(attempt: int, base_delay: float, factor: float, max_delay: float, jitter: bool) -> float:
    delay = min(base_delay * factor ** (attempt - 1), max_delay)
    return delay * (0.5 + random.random()) if jitter else delay


def retry(
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    jitter: bool = True,
    retryable: Tuple[Type[BaseException], ...] = (requests.RequestException,),
    giveup: Callable[[BaseException], bool] = is_client_error,
) -> Callable:
    """Retry the wrapped call on *retryable* errors with exponential backoff.

    Errors for which *giveup* is true propagate on the first attempt; the
    last error propagates once *max_attempts* is reached.
    """

    def decorator(fn: Callable) -> Callable:
        name = fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except retryable as exc:
                    if giveup(exc):
                        log.warning("%s: giving up without retry — %s", name, exc)
                        raise
                    if attempt >= max_attempts:
                        log.error("%s failed after %d attempts: %s", name, attempt, exc)
                        raise
                    delay = _retry_after(exc)
                    if delay is None:
                        delay = backoff_delay(attempt, base_delay, backoff_factor, max_delay, jitter)
                    log.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.1fs",
                        name, attempt, max_attempts, exc, min(delay, max_delay),
                    )
                    time.sleep(min(delay, max_delay))
                    attempt += 1

        return wrapper

    return decorator
