"""Transactional storage client for chats and messages.

Every service receives a ``ChatStore`` at construction and performs all of
its storage access through ``with_transaction``. The callable passed in
runs inside a single database transaction: it either commits as a whole or
leaves no trace.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from functools import cached_property
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.config import settings
from src.core.datetime_utils import utc_now_naive
from src.core.exceptions import NoteError, TransactionFailedError
from src.core.logging import get_logger, log_error
from src.core.retry import storage_retrying

logger = get_logger(__name__)

T = TypeVar("T")


def _log_detached_failure(task: "asyncio.Future[Any]") -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is None or isinstance(error, NoteError):
        return
    log_error(
        logger,
        "Storage transaction failed after its caller went away",
        error=error if isinstance(error, Exception) else None,
        extra={"failure": type(error).__name__},
    )


class CommitClock:
    """Source of strictly increasing naive UTC commit timestamps."""

    def __init__(self, source: Callable[[], datetime] = utc_now_naive) -> None:
        self._source = source
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = self._source()
        if self._last is not None and current <= self._last:
            current = self._last + timedelta(microseconds=1)
        self._last = current
        return current


class Transaction:
    """Handle passed to transactional callables."""

    def __init__(self, session: AsyncSession, clock: CommitClock) -> None:
        self.session = session
        self._clock = clock

    @cached_property
    def commit_time(self) -> datetime:
        # Drawn on first use so callers can take their row locks first.
        return self._clock.now()


class ChatStore:
    """SQLAlchemy-backed store offering atomic read-modify-write transactions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout: float | None = None,
        max_attempts: int | None = None,
        clock: CommitClock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.storage_timeout_seconds
        self.max_attempts = max_attempts if max_attempts is not None else settings.transaction_max_attempts
        self.clock = clock or CommitClock()

    async def with_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """
        Run ``fn`` inside one atomic transaction.

        Transient conflicts are retried with backoff; each attempt is bounded
        by ``timeout``. The work is shielded from cancellation of the caller,
        so a disconnecting client cannot abort a transaction half way.

        Raises:
            NoteError: Domain errors raised by ``fn`` (after rollback)
            TransactionFailedError: Conflicts, timeouts, or storage outages
        """
        task = asyncio.ensure_future(self._run_with_retries(fn))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Nobody awaits the transaction any more; report its outcome here.
            task.add_done_callback(_log_detached_failure)
            raise
        except NoteError:
            raise
        except TimeoutError as e:
            logger.warning(
                f"Storage transaction timed out after {self.timeout}s",
                extra={"event_type": "transaction_timeout"},
            )
            raise TransactionFailedError("Storage operation timed out") from e
        except SQLAlchemyError as e:
            log_error(
                logger,
                "Storage transaction failed",
                error=e,
                extra={"event_type": "transaction_failed"},
            )
            raise TransactionFailedError() from e

    async def _run_with_retries(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        async for attempt in storage_retrying(max_attempts=self.max_attempts):
            with attempt:
                return await asyncio.wait_for(self._run_once(fn), timeout=self.timeout)
        raise AssertionError("unreachable")  # pragma: no cover

    async def _run_once(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        async with self._session_factory() as session:
            async with session.begin():
                return await fn(Transaction(session, self.clock))
