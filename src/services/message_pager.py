"""Backward cursor pagination over a chat's message history."""

import uuid
from dataclasses import dataclass, field

from sqlalchemy import and_, or_, select

from src.db.models import ChatMessage
from src.services.access_guard import authorize_chat, parse_id
from src.services.chat_store import ChatStore, Transaction

DEFAULT_PAGE_SIZE = 30
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class MessagePage:
    """Newest-first slice of messages plus the cursor for the next slice."""

    items: list[ChatMessage] = field(default_factory=list)
    next_cursor: uuid.UUID | None = None


def clamp_limit(limit: int | None) -> int:
    """Clamp a requested page size into ``[1, MAX_PAGE_SIZE]``."""
    if not limit:
        return DEFAULT_PAGE_SIZE
    return max(1, min(int(limit), MAX_PAGE_SIZE))


class MessagePager:
    """Read message history newest first, one page at a time."""

    def __init__(self, store: ChatStore) -> None:
        self.store = store

    async def page(
        self,
        chat_id: str | uuid.UUID,
        caller_id: str,
        limit: int | None = DEFAULT_PAGE_SIZE,
        cursor: str | uuid.UUID | None = None,
    ) -> MessagePage:
        """
        Fetch one page of messages ordered by ``created_at`` descending.

        A cursor that is malformed, unknown, or from another chat is ignored
        and the page starts at the newest message. ``next_cursor`` is set
        only when the page came back full.
        """
        page_size = clamp_limit(limit)
        cursor_id = parse_id(cursor) if cursor else None

        async def _load(tx: Transaction) -> MessagePage:
            chat = await authorize_chat(tx.session, chat_id, caller_id)

            query = (
                select(ChatMessage)
                .where(ChatMessage.chat_id == chat.id)
                .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
                .limit(page_size)
            )

            if cursor_id is not None:
                anchor = await tx.session.get(ChatMessage, cursor_id)
                if anchor is not None and anchor.chat_id == chat.id:
                    query = query.where(
                        or_(
                            ChatMessage.created_at < anchor.created_at,
                            and_(
                                ChatMessage.created_at == anchor.created_at,
                                ChatMessage.id < anchor.id,
                            ),
                        )
                    )

            items = list((await tx.session.execute(query)).scalars().all())
            next_cursor = items[-1].id if len(items) == page_size else None
            return MessagePage(items=items, next_cursor=next_cursor)

        return await self.store.with_transaction(_load)
