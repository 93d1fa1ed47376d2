"""Chat lifecycle operations: create, list, read, rename, favorite, delete."""

import uuid

from sqlalchemy import delete, select

from src.core.config import settings
from src.core.exceptions import InvalidRequestError, InvalidTitleError
from src.core.logging import get_logger
from src.db.models import UNTITLED_TITLE, Chat, ChatMessage
from src.services.access_guard import AccessGuard, authorize_chat
from src.services.append_transaction import AppendResult, AppendTransaction
from src.services.chat_list_projector import ChatListProjection, project_chats
from src.services.chat_store import ChatStore, Transaction
from src.services.message_pager import DEFAULT_PAGE_SIZE, MessagePage, MessagePager
from src.services.metadata_formatter import code_units

logger = get_logger(__name__)

MAX_TITLE_LENGTH = 80


def validate_title(title: object) -> str:
    """Trim a user-supplied title and check its length."""
    if not isinstance(title, str):
        raise InvalidTitleError("Title must be a string")
    trimmed = title.strip()
    if not trimmed:
        raise InvalidTitleError("Title must not be empty")
    if code_units(trimmed) > MAX_TITLE_LENGTH:
        raise InvalidTitleError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return trimmed


class ChatService:
    """Entry point for every chat-scoped operation of the API."""

    def __init__(
        self,
        store: ChatStore,
        *,
        list_limit: int | None = None,
        delete_batch_size: int | None = None,
        appender: AppendTransaction | None = None,
    ) -> None:
        self.store = store
        self.guard = AccessGuard(store)
        self.appender = appender or AppendTransaction(store)
        self.pager = MessagePager(store)
        self.list_limit = list_limit or settings.chat_list_limit
        self.delete_batch_size = delete_batch_size or settings.delete_batch_size

    async def create_chat(self, owner_id: str) -> Chat:
        """Create an empty, untitled chat owned by ``owner_id``."""

        async def _create(tx: Transaction) -> Chat:
            now = tx.commit_time
            chat = Chat(
                id=uuid.uuid4(),
                owner_id=owner_id,
                title=UNTITLED_TITLE,
                last_message_preview="",
                favorite=False,
                created_at=now,
                updated_at=now,
            )
            tx.session.add(chat)
            await tx.session.flush()
            return chat

        chat = await self.store.with_transaction(_create)
        logger.info(
            "Chat created",
            extra={"event_type": "chat_created", "chat_id": str(chat.id)},
        )
        return chat

    async def list_chats(self, owner_id: str) -> ChatListProjection:
        """The owner's most recently updated chats, favorites first."""

        async def _list(tx: Transaction) -> list[Chat]:
            query = (
                select(Chat)
                .where(Chat.owner_id == owner_id)
                .order_by(Chat.updated_at.desc())
                .limit(self.list_limit)
            )
            return list((await tx.session.execute(query)).scalars().all())

        return project_chats(await self.store.with_transaction(_list))

    async def get_chat(self, chat_id: str | uuid.UUID, caller_id: str) -> Chat:
        return await self.guard.authorize(chat_id, caller_id)

    async def rename_chat(self, chat_id: str | uuid.UUID, caller_id: str, title: object) -> str:
        """Set an explicit title. Validation happens before any storage access."""
        next_title = validate_title(title)

        async def _rename(tx: Transaction) -> str:
            chat = await authorize_chat(tx.session, chat_id, caller_id, lock=True)
            chat.title = next_title
            chat.updated_at = max(chat.updated_at, tx.commit_time)
            return next_title

        return await self.store.with_transaction(_rename)

    async def set_favorite(self, chat_id: str | uuid.UUID, caller_id: str, favorite: object) -> bool:
        """Mark or unmark a chat as favorite.

        ``favorited_at`` moves only on a false -> true transition; unfavoriting
        keeps the previous value.
        """
        if not isinstance(favorite, bool):
            raise InvalidRequestError("favorite must be a boolean")

        async def _set(tx: Transaction) -> bool:
            chat = await authorize_chat(tx.session, chat_id, caller_id, lock=True)
            now = tx.commit_time
            if favorite and not chat.favorite:
                chat.favorited_at = now
            chat.favorite = favorite
            chat.updated_at = max(chat.updated_at, now)
            return favorite

        return await self.store.with_transaction(_set)

    async def delete_chat(self, chat_id: str | uuid.UUID, caller_id: str) -> int:
        """
        Delete a chat and all of its messages.

        Messages go in batches of at most ``delete_batch_size``, each batch in
        its own transaction that re-checks ownership. The batch that finds the
        history exhausted removes the chat row as well.

        Returns:
            Number of messages deleted
        """
        batch_size = self.delete_batch_size

        async def _delete_batch(tx: Transaction) -> tuple[int, bool]:
            chat = await authorize_chat(tx.session, chat_id, caller_id, lock=True)
            batch = (
                select(ChatMessage.id)
                .where(ChatMessage.chat_id == chat.id)
                .limit(batch_size)
            )
            result = await tx.session.execute(
                delete(ChatMessage)
                .where(ChatMessage.id.in_(batch))
                .execution_options(synchronize_session=False)
            )
            removed = result.rowcount or 0
            finished = removed < batch_size
            if finished:
                await tx.session.delete(chat)
            return removed, finished

        deleted = 0
        while True:
            removed, finished = await self.store.with_transaction(_delete_batch)
            deleted += removed
            if finished:
                break

        logger.info(
            "Chat deleted",
            extra={
                "event_type": "chat_deleted",
                "chat_id": str(chat_id),
                "deleted_messages": deleted,
            },
        )
        return deleted

    async def append_message(self, chat_id: str | uuid.UUID, caller_id: str, content: object) -> AppendResult:
        return await self.appender.append_message(chat_id, caller_id, content)

    async def list_messages(
        self,
        chat_id: str | uuid.UUID,
        caller_id: str,
        limit: int | None = DEFAULT_PAGE_SIZE,
        cursor: str | None = None,
    ) -> MessagePage:
        return await self.pager.page(chat_id, caller_id, limit, cursor)
