"""
Retry Strategies using Tenacity.

Standard retry policy for chain and storage reads.
"""

from __future__ import annotations

from typing import Any, Callable

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from agentic_trust.core.exceptions import NetworkError
from agentic_trust.core.logging import get_logger

logger = get_logger("resilience.retry")

DEFAULT_ATTEMPTS = 3


def is_transient_error(exception: BaseException) -> bool:
    """Check if exception is a transient network/infrastructure error."""
    if isinstance(exception, NetworkError):
        return exception.is_transient()
    return isinstance(exception, (httpx.TimeoutException, httpx.TransportError))


def _log_retry(retry_state: Any) -> None:
    logger.warning(
        f"Retrying after transient error... (Attempt {retry_state.attempt_number}): "
        f"{retry_state.outcome.exception()}"
    )


def retry_policy(
    attempts: int = DEFAULT_ATTEMPTS,
    min_wait: float = 0.5,
    max_wait: float = 4.0,
) -> AsyncRetrying:
    """
    Build the standard async retry policy.

    Retries only transient errors, with exponential backoff, and re-raises the
    last error once ``attempts`` is exhausted.
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_transient_error),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        stop=stop_after_attempt(attempts),
        reraise=True,
        before_sleep=_log_retry,
    )


async def execute_with_retry(
    func: Callable[..., Any],
    *args: Any,
    attempts: int = DEFAULT_ATTEMPTS,
    min_wait: float = 0.5,
    max_wait: float = 4.0,
    **kwargs: Any,
) -> Any:
    """Execute an async function with the standard retry policy."""
    async for attempt in retry_policy(attempts, min_wait, max_wait):
        with attempt:
            return await func(*args, **kwargs)


__all__ = ["is_transient_error", "retry_policy", "execute_with_retry", "DEFAULT_ATTEMPTS"]
