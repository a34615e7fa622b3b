"""Transient vs permanent failures of QingCloud API calls.

A failed call is one of:
- retryable: transport hiccups, HTTP 429/5xx, server-busy ret_codes
- permanent: bad input, auth, quota, resources that no longer exist
- unknown: anything else; treated like permanent by callers

QingCloudClient retries read-only describe calls through with_retry().
JobWaiter uses is_retryable() to decide whether a failed poll ends the wait.

    volumes = await with_retry(lambda: api.describe_volumes(["vol-1"]), max_retries=3)
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import TypeVar

import httpx

from qcvolume.core.errors import AlreadyDoneError, RemoteError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorClass(StrEnum):
    RETRYABLE = "retryable"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


# =============================================================================
# Transport
# =============================================================================

HTTPX_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
    httpx.RemoteProtocolError,
)

HTTPX_NON_RETRYABLE = (
    httpx.InvalidURL,
    httpx.TooManyRedirects,
)


def is_httpx_retryable(exc: Exception) -> bool:
    """Transport failures and throttled or failing gateways are retryable."""
    if isinstance(exc, HTTPX_RETRYABLE):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return False


# =============================================================================
# QingCloud ret_code
# =============================================================================

# Internal error, server busy, server updating
API_RETRYABLE_CODES = frozenset({5000, 5100, 5300})

# Bad message, auth failure, expired, denied, not found, no balance, quota
API_NON_RETRYABLE_CODES = frozenset({1100, 1200, 1300, 1400, 2100, 2400, 2500})


def is_api_retryable(exc: RemoteError) -> bool:
    if isinstance(exc, AlreadyDoneError):
        return False
    return exc.transient or exc.ret_code in API_RETRYABLE_CODES


# =============================================================================
# Classification
# =============================================================================


def classify_error(exc: Exception) -> ErrorClass:
    """Place exc in one of the three ErrorClass buckets."""
    if isinstance(exc, asyncio.TimeoutError):
        return ErrorClass.RETRYABLE

    if isinstance(exc, RemoteError):
        if is_api_retryable(exc):
            return ErrorClass.RETRYABLE
        if isinstance(exc, AlreadyDoneError) or exc.ret_code in API_NON_RETRYABLE_CODES:
            return ErrorClass.PERMANENT
        return ErrorClass.UNKNOWN

    if isinstance(exc, HTTPX_NON_RETRYABLE):
        return ErrorClass.PERMANENT
    if isinstance(exc, (httpx.HTTPStatusError, *HTTPX_RETRYABLE)):
        return ErrorClass.RETRYABLE if is_httpx_retryable(exc) else ErrorClass.PERMANENT

    return ErrorClass.UNKNOWN


def is_retryable(exc: Exception) -> bool:
    return classify_error(exc) is ErrorClass.RETRYABLE


# =============================================================================
# Retry loop
# =============================================================================


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential delay for a zero-based attempt, capped, with 50-150% jitter."""
    delay = min(base_delay * (2**attempt), max_delay)
    return delay * random.uniform(0.5, 1.5)


async def with_retry(
    call: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> T:
    """Await call(), retrying retryable failures with backoff.

    call must build a fresh awaitable on every invocation. Permanent and
    unknown failures are raised on the first occurrence; a retryable one is
    raised once max_retries retries are spent.
    """
    attempt = 0
    while True:
        try:
            return await call()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            if attempt >= max_retries:
                logger.error(
                    "Giving up after %d attempts: %s",
                    attempt + 1,
                    exc,
                    extra={"attempt": attempt + 1},
                )
                raise

            delay = backoff_delay(attempt, base_delay, max_delay)
            attempt += 1
            logger.warning(
                "Transient failure, retry %d/%d in %.1fs: %s",
                attempt,
                max_retries,
                delay,
                exc,
                extra={"attempt": attempt, "delay": delay},
            )
            await asyncio.sleep(delay)
