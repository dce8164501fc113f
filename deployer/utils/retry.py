"""Bounded retry with fixed backoff."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a retried action."""
    success: bool
    attempts: int
    value: Optional[T] = None
    error: Optional[BaseException] = None


async def retry_async(
    action: Callable[[], Awaitable[T]],
    *,
    is_retryable: Callable[[BaseException], bool],
    max_attempts: int,
    delay: float = 0.0,
    on_retry: Optional[Callable[[BaseException, int], Any]] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryOutcome[T]:
    """
    Run ``action`` until it succeeds or attempts run out.

    Args:
        action: Coroutine factory, called once per attempt
        is_retryable: Decides whether an exception is worth another attempt
        max_attempts: Upper bound on calls to ``action``
        delay: Seconds to wait between attempts
        on_retry: Called with (error, attempt) after the wait, before the next
            attempt. May be a coroutine function.
        sleep: Wait primitive (injectable for tests)

    Returns:
        RetryOutcome with the action's value, or the last retryable error
        once attempts are exhausted.

    Raises:
        Any exception for which ``is_retryable`` returns False.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: Optional[BaseException] = None
    for attempt in range(1, max_attempts + 1):
        try:
            value = await action()
            return RetryOutcome(success=True, attempts=attempt, value=value)
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_error = exc
            if attempt == max_attempts:
                break
            logger.debug(f"[retry] attempt {attempt}/{max_attempts} failed: {exc}")
            if delay > 0:
                await sleep(delay)
            if on_retry is not None:
                maybe = on_retry(exc, attempt)
                if asyncio.iscoroutine(maybe):
                    await maybe

    return RetryOutcome(success=False, attempts=max_attempts, error=last_error)
