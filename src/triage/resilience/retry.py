"""Retry decorator for read-only collaborator calls, built on tenacity.

Retry 3 times with exponential backoff and jitter, then log and re-raise the
original exception.  Only idempotent reads (inbox listing, ordering scrape)
are decorated; mailbox mutations are never retried automatically.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def _log_final_failure(retry_state: RetryCallState) -> Any:
    """Log exhaustion, then re-raise the last attempt's exception."""
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None

    logger.error(
        "api_call_failed_after_retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    if retry_state.outcome is not None:
        return retry_state.outcome.result()
    return None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "retrying_api_call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(
    api_name: str,
    *,
    attempts: int = 3,
    initial_wait: float = 1,
    max_wait: float = 30,
    jitter: float = 5,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> Callable[[F], F]:
    """Create a retry decorator for an API call (sync or async).

    Args:
        api_name: Human-readable name for the API (used in logs).
        attempts: Maximum number of attempts including the first.
        initial_wait: First backoff in seconds.
        max_wait: Backoff ceiling in seconds.
        jitter: Maximum random jitter added to each backoff.
        retry_on: Exception types that trigger a retry; anything else
            propagates immediately.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=jitter),
            retry=retry_if_exception_type(retry_on),
            before_sleep=_before_sleep_log,
            retry_error_callback=_log_final_failure,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
