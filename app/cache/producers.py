"""
Producer helpers.

The cache never times out or retries a producer on its own; callers wrap
their producer with these helpers before handing it to get_or_set.
"""
import asyncio
import inspect
import logging
import re
from typing import Any, Awaitable, Callable, Optional, Union

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

logger = logging.getLogger("cache.producers")

Producer = Callable[[], Union[Awaitable[Any], Any]]

# HTTP status codes that indicate transient server errors
TRANSIENT_STATUS_CODES = {429, 502, 503}
NON_TRANSIENT_STATUS_CODES = {400, 401, 403, 404, 422}

TRANSIENT_MESSAGE_PATTERNS = [
    re.compile(r"\b502\b"),
    re.compile(r"\b503\b"),
    re.compile(r"bad gateway", re.IGNORECASE),
    re.compile(r"service unavailable", re.IGNORECASE),
    re.compile(r"temporarily unavailable", re.IGNORECASE),
    re.compile(r"network.*(?:error|fail)", re.IGNORECASE),
    re.compile(r"(?:error|fail).*network", re.IGNORECASE),
    re.compile(r"connection.*(?:refused|reset|timed?\s*out|closed)", re.IGNORECASE),
    re.compile(r"(?:request|socket|connection).*timed?\s*out", re.IGNORECASE),
    re.compile(r"dns.*(?:error|fail|lookup)", re.IGNORECASE),
]


async def call_producer(producer: Producer) -> Any:
    """Invoke a producer, awaiting its result if it returned an awaitable."""
    result = producer()
    if inspect.isawaitable(result):
        result = await result
    return result


def is_transient_error(error: BaseException) -> bool:
    """
    Check if an error is a transient failure worth retrying.

    Checks, in order: exception type, HTTP status attributes, message patterns.
    """
    if error is None or isinstance(error, asyncio.CancelledError):
        return False

    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True

    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    if isinstance(status, int):
        if status in TRANSIENT_STATUS_CODES:
            return True
        if status in NON_TRANSIENT_STATUS_CODES:
            return False

    message = str(error)
    return any(pattern.search(message) for pattern in TRANSIENT_MESSAGE_PATTERNS)


def with_timeout(producer: Producer, seconds: float) -> Callable[[], Awaitable[Any]]:
    """
    Wrap a producer so it fails with asyncio.TimeoutError after `seconds`.
    """
    if seconds <= 0:
        raise ValueError(f"timeout must be > 0, got {seconds}")

    async def _producer() -> Any:
        return await asyncio.wait_for(call_producer(producer), timeout=seconds)

    return _producer


def with_retry(
    producer: Producer,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    should_retry: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[Callable[[BaseException, int, float], None]] = None,
) -> Callable[[], Awaitable[Any]]:
    """
    Wrap a producer so transient failures are retried with backoff.

    Args:
        producer: The producer to wrap
        max_retries: Retries after the first attempt
        base_delay: Exponential backoff multiplier in seconds (full jitter applied)
        max_delay: Upper bound for any single delay
        should_retry: Decides whether an error is retryable (default: is_transient_error)
        on_retry: Called as on_retry(error, attempt, delay) before each retry

    Returns:
        A producer that raises the last error, unwrapped, once retries are exhausted
    """
    check = should_retry or is_transient_error

    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        attempt = retry_state.attempt_number
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"Transient producer error (attempt {attempt}/{max_retries}), "
            f"retrying in {delay:.2f}s: {error!r}"
        )
        if on_retry is not None:
            on_retry(error, attempt, delay)

    async def _producer() -> Any:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_retries + 1),
            wait=wait_random_exponential(multiplier=base_delay, max=max_delay),
            retry=retry_if_exception(check),
            before_sleep=_before_sleep,
            reraise=True,
        )
        return await retrying(call_producer, producer)

    return _producer
