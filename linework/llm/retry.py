# linework/llm/retry.py
"""Retry logic for remote generation calls with exponential backoff and jitter."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from linework.errors import ErrorKind, GenerationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Google RPC status names, as carried by google.genai.errors.APIError.status
_RATE_LIMITED_STATUSES = {"RESOURCE_EXHAUSTED"}
_OVERLOADED_STATUSES = {"UNAVAILABLE"}

_RATE_LIMITED_TEXT = ("429", "quota", "resource_exhausted", "too many requests")
_OVERLOADED_TEXT = ("503", "overloaded", "service unavailable")

DEFAULT_MAX_RETRIES = 12
DEFAULT_BASE_DELAY = 6.0
DEFAULT_GROWTH_FACTOR = 1.6
DEFAULT_MAX_JITTER = 2.0


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _structured_codes(error: BaseException) -> tuple[set[int], set[str]]:
    """Collect numeric codes and status names from an error and its nested `error` payload."""
    codes: set[int] = set()
    statuses: set[str] = set()

    values: list[Any] = [getattr(error, attr, None) for attr in ("code", "status_code", "status")]

    # Some SDK errors wrap the JSON body: {"error": {"code": 429, "status": "..."}}
    nested = getattr(error, "error", None)
    if isinstance(nested, dict):
        values.extend(nested.get(key) for key in ("code", "status"))
    elif nested is not None:
        values.extend(getattr(nested, attr, None) for attr in ("code", "status"))

    for value in values:
        if value is None:
            continue
        number = _as_int(value)
        if number is not None:
            codes.add(number)
        elif isinstance(value, str):
            statuses.add(value.upper())

    return codes, statuses


def classify(error: BaseException) -> ErrorKind:
    """
    Classify a failed call as rate-limited, overloaded, or fatal.

    Structured status fields win; the lowercase message is only consulted when
    they don't match. Rate limiting is checked before overload.

    Args:
        error: Exception raised by a remote call

    Returns:
        ErrorKind for the failure
    """
    if isinstance(error, GenerationError):
        return error.kind

    codes, statuses = _structured_codes(error)

    if 429 in codes or statuses & _RATE_LIMITED_STATUSES:
        return ErrorKind.RATE_LIMITED
    if 503 in codes or statuses & _OVERLOADED_STATUSES:
        return ErrorKind.OVERLOADED

    message = str(error).lower()
    if any(token in message for token in _RATE_LIMITED_TEXT):
        return ErrorKind.RATE_LIMITED
    if any(token in message for token in _OVERLOADED_TEXT):
        return ErrorKind.OVERLOADED

    return ErrorKind.FATAL


def is_retryable(exception: BaseException) -> bool:
    """Returns True if the exception is transient (rate-limited or overloaded)."""
    return classify(exception).transient


async def resilient_call(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    *,
    growth_factor: float = DEFAULT_GROWTH_FACTOR,
    max_jitter: float = DEFAULT_MAX_JITTER,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """
    Await `operation()` and retry transient failures with backoff.

    The operation is attempted at most `max_retries` times (once when
    `max_retries <= 0`). Before retry n (0-based) the caller sleeps
    `base_delay * growth_factor**n + uniform(0, max_jitter)` seconds. Only
    this call's continuation is suspended; concurrent callers keep running.

    Args:
        operation: Zero-argument coroutine function performing one remote call
        max_retries: Total number of attempts
        base_delay: Delay before the first retry, in seconds
        growth_factor: Exponential growth per attempt
        max_jitter: Upper bound of the uniform random jitter, in seconds
        sleep: Optional sleep coroutine (tests inject a recorder)

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        Exception: The last attempt's own exception, unchanged, when the
            failure is fatal or attempts ran out.
    """
    retrying_kwargs: dict[str, Any] = {}
    if sleep is not None:
        retrying_kwargs["sleep"] = sleep

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, max_retries)),
        wait=wait_exponential(multiplier=base_delay, exp_base=growth_factor, min=0)
        + wait_random(0, max_jitter),
        retry=retry_if_exception(is_retryable),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
        **retrying_kwargs,
    ):
        with attempt:
            return await operation()
    raise AssertionError("unreachable: AsyncRetrying re-raises the last failure")
