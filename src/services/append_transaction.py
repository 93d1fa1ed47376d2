"""Atomic message append with derived chat metadata."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, or_, update

from src.core.exceptions import InvalidContentError
from src.core.logging import get_logger
from src.db.models import UNTITLED_TITLE, Chat, ChatMessage, MessageRole
from src.services.access_guard import authorize_chat
from src.services.chat_store import ChatStore, Transaction
from src.services.metadata_formatter import derive_preview, derive_title

logger = get_logger(__name__)


@dataclass(frozen=True)
class AppendResult:
    """Outcome of a committed append."""

    message_id: uuid.UUID
    chat_id: uuid.UUID
    created_at: datetime
    # Set only when this append gave the chat its first title.
    title: str | None = None


def generate_message_id() -> uuid.UUID:
    """Generate the id of a message before its transaction opens."""
    return uuid.uuid4()


def needs_title(title: str | None) -> bool:
    """Whether a chat still carries no real title."""
    return not title or title == UNTITLED_TITLE


class AppendTransaction:
    """Insert a message and update its chat's metadata in one transaction.

    The message id is generated up front and reused if the store retries the
    transaction, so the response never depends on storage-assigned ids.
    Concurrent appends to a fresh chat race on the title; a compare-and-set
    against the placeholder makes exactly one of them win.
    """

    def __init__(
        self,
        store: ChatStore,
        id_factory: Callable[[], uuid.UUID] = generate_message_id,
    ) -> None:
        self.store = store
        self.id_factory = id_factory

    async def append_message(
        self,
        chat_id: str | uuid.UUID,
        caller_id: str,
        content: object,
    ) -> AppendResult:
        """
        Append a user message to a chat.

        Raises:
            InvalidContentError: If content is not a non-blank string (no storage access)
            ChatNotFoundError: If the chat does not exist
            ChatForbiddenError: If the caller does not own the chat
            TransactionFailedError: On storage conflicts or timeouts
        """
        if not isinstance(content, str) or not content.strip():
            raise InvalidContentError()

        trimmed = content.strip()
        message_id = self.id_factory()
        preview = derive_preview(trimmed)

        async def _append(tx: Transaction) -> AppendResult:
            chat = await authorize_chat(tx.session, chat_id, caller_id, lock=True)
            now = tx.commit_time

            assigned_title: str | None = None
            if needs_title(chat.title):
                next_title = derive_title(trimmed)
                result = await tx.session.execute(
                    update(Chat)
                    .where(
                        Chat.id == chat.id,
                        or_(Chat.title == UNTITLED_TITLE, Chat.title == ""),
                    )
                    .values(title=next_title)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    assigned_title = next_title

            await tx.session.execute(
                update(Chat)
                .where(Chat.id == chat.id)
                .values(
                    updated_at=case((Chat.updated_at > now, Chat.updated_at), else_=now),
                    last_message_at=case((Chat.last_message_at > now, Chat.last_message_at), else_=now),
                    last_message_preview=preview,
                )
                .execution_options(synchronize_session=False)
            )

            tx.session.add(
                ChatMessage(
                    id=message_id,
                    chat_id=chat.id,
                    author_id=caller_id,
                    role=MessageRole.USER.value,
                    content=trimmed,
                    created_at=now,
                )
            )
            await tx.session.flush()

            return AppendResult(
                message_id=message_id,
                chat_id=chat.id,
                created_at=now,
                title=assigned_title,
            )

        result = await self.store.with_transaction(_append)

        logger.info(
            "Message appended",
            extra={
                "event_type": "message_appended",
                "chat_id": str(result.chat_id),
                "message_id": str(result.message_id),
                "title_assigned": result.title is not None,
            },
        )
        return result
