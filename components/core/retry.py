"""Bounded retries for network-level database failures."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import InterfaceError, OperationalError

from components.core.config import get_settings
from components.core.exceptions import RetryExhaustedError
from components.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


def is_retryable(error: BaseException) -> bool:
    """Connection and timeout failures are retryable; everything else is terminal."""
    return isinstance(error, RETRYABLE_ERRORS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
    delay: Optional[float] = None,
    label: str = "operation",
) -> T:
    """
    Run ``operation`` and retry it on network errors.

    ``attempts`` counts retries after the first call. Terminal errors are
    re-raised immediately.
    """
    settings = get_settings()
    retries = settings.NETWORK_RETRY_ATTEMPTS if attempts is None else attempts
    wait = settings.NETWORK_RETRY_DELAY_SECONDS if delay is None else delay

    for attempt in range(retries + 1):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= retries:
                logger.error("%s failed after %d attempts: %s", label, attempt + 1, e)
                raise RetryExhaustedError(
                    f"Connection to the database failed while running {label}. Please try again."
                ) from e
            logger.warning("%s failed (attempt %d/%d), retrying in %.1fs: %s",
                           label, attempt + 1, retries + 1, wait, e)
            await asyncio.sleep(wait)
    raise AssertionError("unreachable")
