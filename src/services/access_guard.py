"""Ownership checks for chat-scoped operations."""

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.exceptions import ChatForbiddenError, ChatNotFoundError
from src.core.logging import get_logger, log_security_event
from src.db.models import Chat
from src.services.chat_store import ChatStore, Transaction

logger = get_logger(__name__)


def parse_id(value: str | uuid.UUID) -> uuid.UUID | None:
    """Parse an opaque record id, returning None when malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(value)
    except (ValueError, AttributeError, TypeError):
        return None


async def authorize_chat(
    session: AsyncSession,
    chat_id: str | uuid.UUID,
    caller_id: str,
    *,
    lock: bool = False,
) -> Chat:
    """
    Load a chat and verify the caller owns it.

    Args:
        session: Session of the enclosing transaction
        chat_id: Chat identifier
        caller_id: Verified identity of the caller
        lock: Take a row lock (``SELECT ... FOR UPDATE``) for read-modify-write

    Returns:
        The chat record

    Raises:
        ChatNotFoundError: If the chat does not exist or the id is malformed
        ChatForbiddenError: If the chat is owned by someone else
    """
    parsed = parse_id(chat_id)
    if parsed is None:
        raise ChatNotFoundError()

    query = select(Chat).where(Chat.id == parsed)
    if lock:
        query = query.with_for_update()
    chat = (await session.execute(query)).scalar_one_or_none()

    if chat is None:
        raise ChatNotFoundError()

    if chat.owner_id != caller_id:
        log_security_event(
            logger,
            "Chat access denied",
            details={"chat_id": str(parsed), "caller_id": caller_id},
        )
        raise ChatForbiddenError()

    return chat


class AccessGuard:
    """Standalone ownership gate for reads outside a larger transaction."""

    def __init__(self, store: ChatStore) -> None:
        self.store = store

    async def authorize(self, chat_id: str | uuid.UUID, caller_id: str) -> Chat:
        async def _load(tx: Transaction) -> Chat:
            return await authorize_chat(tx.session, chat_id, caller_id)

        return await self.store.with_transaction(_load)
