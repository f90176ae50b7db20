"""
Retry Utilities for Batch Operations

Provides retry logic for transient read failures (count and page fetch).
Writes are never retried here: every write failure is collected and handed
back to the caller.
"""

import logging
from typing import Callable, Awaitable, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
    before_sleep_log,
)

from ..batch_ops_config import BatchOperationConfig
from ..batch_ops_exceptions import TransientQueryError

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Message fragments store clients use for conditions worth retrying
TRANSIENT_PATTERNS = (
    "unavailable",
    "deadline exceeded",
    "deadline_exceeded",
    "resource exhausted",
    "resource_exhausted",
    "temporarily unavailable",
    "too many requests",
)


def is_transient_read_error(exception: BaseException) -> bool:
    """
    Determine whether a read failure represents a transient condition.

    Backends may raise TransientQueryError explicitly. Other exceptions are
    classified by message, since store clients do not expose granular types
    for every transient condition.
    """
    if isinstance(exception, TransientQueryError):
        return True
    if not isinstance(exception, Exception):
        return False

    error_message = str(exception).lower()
    return any(pattern in error_message for pattern in TRANSIENT_PATTERNS)


async def retry_transient_read(
    operation: Callable[[], Awaitable[T]],
    config: BatchOperationConfig,
    operation_name: str
) -> T:
    """
    Run a read, retrying on transient errors.

    Uses linear backoff (``read_retry_delay * attempt``) and at most
    ``max_read_retries`` attempts. Non-transient errors propagate on the
    first attempt.

    Args:
        operation: Zero-argument coroutine function performing the read
        config: Configuration holding the retry settings
        operation_name: Human-readable name for logging

    Returns:
        Result of the read

    Raises:
        The last exception raised by ``operation`` once attempts are exhausted
    """
    if not config.retry_transient_reads:
        return await operation()

    retrying = AsyncRetrying(
        retry=retry_if_exception(is_transient_read_error),
        stop=stop_after_attempt(config.max_read_retries),
        wait=wait_incrementing(start=config.read_retry_delay, increment=config.read_retry_delay),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )

    try:
        async for attempt in retrying:
            with attempt:
                return await operation()
    except Exception as e:
        if is_transient_read_error(e):
            logger.warning(
                f"Transient error in {operation_name} persisted after "
                f"{config.max_read_retries} attempts: {e}"
            )
        raise
