"""Tests for the transactional storage client and its retry policy."""

import asyncio
import logging
import uuid
from datetime import datetime
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from src.core.exceptions import ChatNotFoundError, TransactionFailedError
from src.core.retry import is_retryable_storage_error
from src.db.models import Chat
from src.services.chat_store import ChatStore, CommitClock


def new_chat(owner: str = "user-a") -> Chat:
    now = datetime(2026, 1, 1, 12, 0)
    return Chat(id=uuid.uuid4(), owner_id=owner, created_at=now, updated_at=now)


async def chat_exists(session_factory, chat_id) -> bool:
    async with session_factory() as session:
        result = await session.execute(select(Chat.id).where(Chat.id == chat_id))
        return result.scalar_one_or_none() is not None


class TestRetryableErrors:
    """Test retryable storage error detection."""

    def test_operational_error_is_retryable(self):
        error = OperationalError("UPDATE chats", {}, Exception("database is locked"))
        assert is_retryable_storage_error(error)

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01"])
    def test_serialization_failures_are_retryable(self, sqlstate):
        orig = MagicMock()
        orig.sqlstate = sqlstate
        error = DBAPIError("UPDATE chats", {}, orig)
        assert is_retryable_storage_error(error)

    def test_integrity_error_not_retryable(self):
        orig = MagicMock()
        orig.sqlstate = "23505"
        error = IntegrityError("INSERT", {}, orig)
        assert not is_retryable_storage_error(error)

    def test_domain_error_not_retryable(self):
        assert not is_retryable_storage_error(ChatNotFoundError())


class TestCommitClock:
    """Test commit timestamp generation."""

    def test_strictly_increasing_with_frozen_source(self):
        frozen = datetime(2026, 1, 1, 12, 0)
        clock = CommitClock(source=lambda: frozen)

        stamps = [clock.now() for _ in range(3)]

        assert stamps[0] == frozen
        assert stamps[0] < stamps[1] < stamps[2]

    def test_never_goes_backwards(self):
        times = iter([datetime(2026, 1, 1, 12, 0, 5), datetime(2026, 1, 1, 12, 0, 1)])
        clock = CommitClock(source=lambda: next(times))

        first = clock.now()
        second = clock.now()

        assert second > first


class TestWithTransaction:
    """Test commit, rollback, retry and timeout behaviour."""

    async def test_commits_on_success(self, store, session_factory):
        chat = new_chat()

        async def _create(tx):
            tx.session.add(chat)
            return chat.id

        chat_id = await store.with_transaction(_create)

        assert await chat_exists(session_factory, chat_id)

    async def test_domain_error_rolls_back_without_retry(self, store, session_factory):
        chat = new_chat()
        calls = 0

        async def _fail(tx):
            nonlocal calls
            calls += 1
            tx.session.add(chat)
            await tx.session.flush()
            raise ChatNotFoundError()

        with pytest.raises(ChatNotFoundError):
            await store.with_transaction(_fail)

        assert calls == 1
        assert not await chat_exists(session_factory, chat.id)

    async def test_retries_transient_conflicts(self, store):
        calls = 0

        async def _flaky(tx):
            nonlocal calls
            calls += 1
            if calls < 3:
                raise OperationalError("UPDATE chats", {}, Exception("database is locked"))
            return "committed"

        assert await store.with_transaction(_flaky) == "committed"
        assert calls == 3

    async def test_exhausted_retries_raise_transaction_failed(self, session_factory):
        store = ChatStore(session_factory, timeout=5.0, max_attempts=2)
        calls = 0

        async def _locked(tx):
            nonlocal calls
            calls += 1
            raise OperationalError("UPDATE chats", {}, Exception("database is locked"))

        with pytest.raises(TransactionFailedError):
            await store.with_transaction(_locked)

        assert calls == 2

    async def test_non_retryable_storage_error_fails_fast(self, store):
        calls = 0

        async def _conflict(tx):
            nonlocal calls
            calls += 1
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(TransactionFailedError):
            await store.with_transaction(_conflict)

        assert calls == 1

    async def test_timeout_rolls_back(self, session_factory):
        store = ChatStore(session_factory, timeout=0.05, max_attempts=1)
        chat = new_chat()

        async def _slow(tx):
            tx.session.add(chat)
            await tx.session.flush()
            await asyncio.sleep(1)

        with pytest.raises(TransactionFailedError):
            await store.with_transaction(_slow)

        assert not await chat_exists(session_factory, chat.id)

    async def test_caller_cancellation_does_not_abort_transaction(self, store, session_factory):
        chat = new_chat()
        done = asyncio.Event()

        async def _slow_create(tx):
            await asyncio.sleep(0.1)
            tx.session.add(chat)
            await tx.session.flush()
            done.set()

        task = asyncio.create_task(store.with_transaction(_slow_create))
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        await asyncio.wait_for(done.wait(), timeout=2)
        # Let the shielded transaction finish committing
        for _ in range(50):
            if await chat_exists(session_factory, chat.id):
                break
            await asyncio.sleep(0.02)

        assert await chat_exists(session_factory, chat.id)

    async def test_failure_after_caller_cancellation_is_logged(self, store, caplog):
        caplog.set_level(logging.ERROR, logger="src.services.chat_store")

        async def _late_conflict(tx):
            await asyncio.sleep(0.05)
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))

        task = asyncio.create_task(store.with_transaction(_late_conflict))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        for _ in range(50):
            if caplog.records:
                break
            await asyncio.sleep(0.02)

        messages = [record.getMessage() for record in caplog.records]
        assert any("after its caller went away" in message for message in messages)

    async def test_commit_time_is_fixed_per_transaction(self, store):
        async def _stamps(tx):
            return tx.commit_time, tx.commit_time

        first, second = await store.with_transaction(_stamps)

        assert first == second
