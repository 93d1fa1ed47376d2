"""Retry policy for storage transactions."""

import logging

from sqlalchemy.exc import DBAPIError, OperationalError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01"})


def is_retryable_storage_error(exception: BaseException) -> bool:
    """Check if a storage error is a transient conflict worth retrying.

    Only errors raised before commit are seen here, so retrying the whole
    transaction cannot produce a second commit.
    """
    if isinstance(exception, OperationalError):
        # SQLite "database is locked", dropped connections
        return True
    if isinstance(exception, DBAPIError):
        orig = exception.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        return sqlstate in RETRYABLE_SQLSTATES
    return False


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    logger.warning(
        f"Retrying storage transaction after {outcome.exception() if outcome else None!r}",
        extra={
            "event_type": "transaction_retry",
            "attempt": retry_state.attempt_number,
        },
    )


def storage_retrying(
    max_attempts: int = 3,
    min_wait: float = 0.05,
    max_wait: float = 1.0,
) -> AsyncRetrying:
    """
    Build a retry controller for one storage transaction.

    Args:
        max_attempts: Maximum number of attempts, including the first
        min_wait: Minimum wait time in seconds
        max_wait: Maximum wait time in seconds

    Returns:
        AsyncRetrying iterator that re-raises the last error when exhausted
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_retryable_storage_error),
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=min_wait, min=min_wait, max=max_wait),
        reraise=True,
        before_sleep=_log_retry,
    )
