"""Tests for backward message pagination."""

import uuid

import pytest

from src.core.exceptions import ChatForbiddenError, ChatNotFoundError
from src.services.message_pager import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    MessagePager,
    clamp_limit,
)

OWNER = "user-a"
STRANGER = "user-b"


@pytest.fixture
def pager(store):
    return MessagePager(store)


async def seed(service, count: int, owner: str = OWNER):
    """Create a chat with ``count`` messages; returns the chat and ids oldest first."""
    chat = await service.create_chat(owner)
    ids = []
    for n in range(count):
        result = await service.append_message(chat.id, owner, f"message {n}")
        ids.append(result.message_id)
    return chat, ids


class TestClampLimit:
    """Test page size clamping."""

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [
            (None, DEFAULT_PAGE_SIZE),
            (0, DEFAULT_PAGE_SIZE),
            (1, 1),
            (30, 30),
            (100, 100),
            (101, MAX_PAGE_SIZE),
            (5000, MAX_PAGE_SIZE),
            (-3, 1),
        ],
    )
    def test_clamp(self, requested, expected):
        assert clamp_limit(requested) == expected


class TestMessagePager:
    """Test page contents and cursors."""

    async def test_thirty_five_messages_in_two_pages(self, pager, service):
        chat, ids = await seed(service, 35)
        newest_first = list(reversed(ids))

        first = await pager.page(chat.id, OWNER, limit=30)

        assert [m.id for m in first.items] == newest_first[:30]
        assert first.next_cursor == newest_first[29]

        second = await pager.page(chat.id, OWNER, limit=30, cursor=str(first.next_cursor))

        assert [m.id for m in second.items] == newest_first[30:]
        assert second.next_cursor is None

    async def test_items_are_newest_first(self, pager, service):
        chat, _ = await seed(service, 5)

        page = await pager.page(chat.id, OWNER)

        created = [m.created_at for m in page.items]
        assert created == sorted(created, reverse=True)
        assert page.items[0].content == "message 4"

    async def test_full_last_page_yields_cursor_then_empty_page(self, pager, service):
        chat, _ = await seed(service, 4)

        first = await pager.page(chat.id, OWNER, limit=2)
        second = await pager.page(chat.id, OWNER, limit=2, cursor=first.next_cursor)
        third = await pager.page(chat.id, OWNER, limit=2, cursor=second.next_cursor)

        assert len(first.items) == 2
        assert len(second.items) == 2
        assert second.next_cursor is not None
        assert third.items == []
        assert third.next_cursor is None

    async def test_empty_chat(self, pager, service):
        chat = await service.create_chat(OWNER)

        page = await pager.page(chat.id, OWNER)

        assert page.items == []
        assert page.next_cursor is None

    @pytest.mark.parametrize("cursor", ["garbage", str(uuid.uuid4())])
    async def test_invalid_cursor_starts_from_newest(self, pager, service, cursor):
        chat, ids = await seed(service, 3)

        page = await pager.page(chat.id, OWNER, cursor=cursor)

        assert [m.id for m in page.items] == list(reversed(ids))

    async def test_cursor_from_other_chat_is_ignored(self, pager, service):
        chat, ids = await seed(service, 3)
        _, other_ids = await seed(service, 2)

        page = await pager.page(chat.id, OWNER, cursor=str(other_ids[0]))

        assert [m.id for m in page.items] == list(reversed(ids))

    async def test_oversized_limit_is_clamped(self, pager, service):
        chat, _ = await seed(service, 3)

        page = await pager.page(chat.id, OWNER, limit=1000)

        assert len(page.items) == 3
        assert page.next_cursor is None

    async def test_unknown_chat(self, pager):
        with pytest.raises(ChatNotFoundError):
            await pager.page(uuid.uuid4(), OWNER)

    async def test_foreign_chat(self, pager, service):
        chat, _ = await seed(service, 1)

        with pytest.raises(ChatForbiddenError):
            await pager.page(chat.id, STRANGER)
