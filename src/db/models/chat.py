"""Chat and chat message models."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.db.base import Base
from src.db.types import PortableUUID

# Placeholder title of a chat that has never been titled.
UNTITLED_TITLE = "新規メモ"


class MessageRole(str, Enum):
    """Author role of a chat message."""

    USER = "user"


class Chat(Base):
    """Conversation thread owned by a single user."""

    __tablename__ = "chats"

    id: Mapped[uuid.UUID] = mapped_column(
        PortableUUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(String(80), nullable=False, default=UNTITLED_TITLE)
    last_message_preview: Mapped[str] = mapped_column(Text, nullable=False, default="")
    favorite: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    favorited_at: Mapped[datetime | None] = mapped_column()
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=lambda: datetime.now(UTC).replace(tzinfo=None))
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=lambda: datetime.now(UTC).replace(tzinfo=None))
    last_message_at: Mapped[datetime | None] = mapped_column()

    __table_args__ = (
        Index("idx_chats_owner_updated", "owner_id", "updated_at"),
    )


class ChatMessage(Base):
    """Immutable message appended to a chat."""

    __tablename__ = "chat_messages"

    id: Mapped[uuid.UUID] = mapped_column(
        PortableUUID(),
        primary_key=True,
    )
    # No foreign key: cascade deletion is done in bounded batches by the service.
    chat_id: Mapped[uuid.UUID] = mapped_column(PortableUUID(), nullable=False)
    author_id: Mapped[str] = mapped_column(String(128), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=MessageRole.USER.value)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_chat_messages_chat_created", "chat_id", "created_at"),
    )
