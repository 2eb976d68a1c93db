"""
Retry mechanisms with exponential backoff for handling transient failures.
"""

import asyncio
import logging
import random
from typing import Any, Callable, Optional
from functools import wraps
from dataclasses import dataclass

from sqlalchemy.exc import DBAPIError, IntegrityError, TimeoutError as SQLTimeoutError

from ..config import get_settings
from ..utils.exceptions import BusyError, ConcurrencyError, StoreUnavailableError

logger = logging.getLogger(__name__)

# Driver messages that signal lock contention rather than an unreachable store
_CONTENTION_MARKERS = (
    "database is locked",
    "could not serialize access",
    "deadlock detected",
    "lock not available",
)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 0.05
    max_delay: float = 1.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_factor: float = 1.0


def compute_delay(config: RetryConfig, attempt: int) -> float:
    """Backoff delay before the attempt following ``attempt`` (0-based)."""
    delay = min(
        config.base_delay * (config.exponential_base ** attempt) * config.backoff_factor,
        config.max_delay
    )

    # Add jitter to prevent thundering herd
    if config.jitter:
        delay = delay * (0.5 + random.random() * 0.5)

    return delay


def translate_store_error(exc: DBAPIError) -> Exception:
    """
    Map a driver error to the reservation error taxonomy.

    Unique-index races and lock timeouts become ``ConcurrencyError`` so the
    caller retries; anything else means the store is unusable.
    """
    message = str(exc.orig if exc.orig is not None else exc).lower()

    if isinstance(exc, IntegrityError) and "unique" in message:
        return ConcurrencyError("Concurrent write hit a unique constraint")

    if any(marker in message for marker in _CONTENTION_MARKERS):
        return ConcurrencyError("Store reported lock contention")

    return StoreUnavailableError(f"Persistence store error: {type(exc).__name__}")


async def retry_async(
    func: Callable,
    config: RetryConfig,
    retryable_exceptions: tuple = (Exception,),
    non_retryable_exceptions: tuple = (),
    *args,
    **kwargs
) -> Any:
    """
    Retry an async function with exponential backoff.

    Args:
        func: The async function to retry
        config: Retry configuration
        retryable_exceptions: Exceptions that should trigger retries
        non_retryable_exceptions: Exceptions that should not trigger retries
        *args, **kwargs: Arguments to pass to the function

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries are exhausted
    """
    last_exception: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            result = await func(*args, **kwargs)

            # Log successful retry if this wasn't the first attempt
            if attempt > 0:
                logger.info(f"Function {func.__name__} succeeded on attempt {attempt + 1}")

            return result

        except non_retryable_exceptions as e:
            logger.debug(f"Non-retryable error in {func.__name__}: {e}")
            raise

        except retryable_exceptions as e:
            last_exception = e

            # Don't sleep after the last attempt
            if attempt == config.max_attempts - 1:
                break

            delay = compute_delay(config, attempt)

            logger.warning(
                f"Attempt {attempt + 1} failed for {func.__name__}: {e}. "
                f"Retrying in {delay:.3f}s..."
            )

            await asyncio.sleep(delay)

    # All retries exhausted
    logger.error(f"All {config.max_attempts} attempts failed for {func.__name__}")
    raise last_exception


def retry_on_concurrency_error(
    operation: str,
    max_attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    max_delay: Optional[float] = None,
    jitter: bool = True
):
    """
    Decorator for reservation operations that run as one store transaction.

    Every call of the wrapped coroutine is a complete attempt. Driver errors
    are translated first; ``ConcurrencyError`` is retried with backoff and,
    once the budget is spent, surfaced as ``BusyError``. Defaults come from
    settings at call time.
    """

    def decorator(func):
        @wraps(func)
        async def attempt(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except DBAPIError as e:
                raise translate_store_error(e) from e
            except asyncio.TimeoutError:
                raise
            except (OSError, SQLTimeoutError) as e:
                # Driver could not reach the store at all
                raise StoreUnavailableError(f"Persistence store unreachable: {type(e).__name__}") from e

        @wraps(func)
        async def wrapper(*args, **kwargs):
            settings = get_settings()
            config = RetryConfig(
                max_attempts=max_attempts or settings.reservation_max_attempts,
                base_delay=base_delay if base_delay is not None else settings.reservation_retry_base_delay,
                max_delay=max_delay if max_delay is not None else settings.reservation_retry_max_delay,
                jitter=jitter
            )
            try:
                return await retry_async(
                    attempt,
                    config,
                    (ConcurrencyError, asyncio.TimeoutError),
                    (ValueError, TypeError),
                    *args,
                    **kwargs
                )
            except (ConcurrencyError, asyncio.TimeoutError) as e:
                raise BusyError(
                    operation,
                    config.max_attempts,
                    retry_after=settings.busy_retry_after_seconds
                ) from e
        return wrapper

    return decorator
