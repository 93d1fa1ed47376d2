"""Chat and message endpoints."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from src.api.deps import get_caller_id, get_chat_service
from src.core.datetime_utils import isoformat_utc
from src.db.models import Chat, ChatMessage
from src.services.chat_service import ChatService
from src.services.message_pager import DEFAULT_PAGE_SIZE

router = APIRouter()


class ChatResponse(BaseModel):
    """Chat response schema."""

    id: UUID
    title: str
    last_message_preview: str
    favorite: bool
    favorited_at: str | None
    created_at: str | None
    updated_at: str | None
    last_message_at: str | None

    @classmethod
    def from_chat(cls, chat: Chat) -> "ChatResponse":
        return cls(
            id=chat.id,
            title=chat.title or "",
            last_message_preview=chat.last_message_preview or "",
            favorite=bool(chat.favorite),
            favorited_at=isoformat_utc(chat.favorited_at),
            created_at=isoformat_utc(chat.created_at),
            updated_at=isoformat_utc(chat.updated_at),
            last_message_at=isoformat_utc(chat.last_message_at),
        )


class ChatCreatedResponse(BaseModel):
    id: UUID


class TitleInput(BaseModel):
    """Rename request. Length is checked after trimming by the service."""

    title: Any = Field(default=None, description="New chat title, 1-80 characters after trimming")


class TitleResponse(BaseModel):
    ok: bool = True
    title: str


class FavoriteInput(BaseModel):
    """Favorite toggle. Must be a JSON boolean; checked by the service."""

    favorite: Any = None


class FavoriteResponse(BaseModel):
    ok: bool = True
    favorite: bool


class DeleteResponse(BaseModel):
    ok: bool = True
    deleted_messages: int


class MessageInput(BaseModel):
    """Message append request. Blank or non-string content is rejected by the service."""

    content: Any = Field(default=None, description="Message text")


class AppendedChat(BaseModel):
    id: UUID
    title: str | None = None


class AppendResponse(BaseModel):
    """Id of the new message and, on first titling, the chat's new title."""

    id: UUID
    chat: AppendedChat


class MessageResponse(BaseModel):
    """Chat message output schema."""

    id: UUID
    role: str
    content: str
    created_at: str | None

    @classmethod
    def from_message(cls, message: ChatMessage) -> "MessageResponse":
        return cls(
            id=message.id,
            role=message.role,
            content=message.content,
            created_at=isoformat_utc(message.created_at),
        )


class MessagePageResponse(BaseModel):
    """Newest-first page of messages."""

    items: list[MessageResponse]
    next_cursor: UUID | None


@router.post("", response_model=ChatCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatCreatedResponse:
    """Create an empty chat."""
    chat = await service.create_chat(caller_id)
    return ChatCreatedResponse(id=chat.id)


@router.get("", response_model=list[ChatResponse])
async def list_chats(
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> list[ChatResponse]:
    """List the caller's chats: favorites first, then by last update."""
    projection = await service.list_chats(caller_id)
    return [ChatResponse.from_chat(chat) for chat in projection.ordered]


@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
    chat_id: str,
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> ChatResponse:
    chat = await service.get_chat(chat_id, caller_id)
    return ChatResponse.from_chat(chat)


@router.patch("/{chat_id}/title", response_model=TitleResponse)
async def rename_chat(
    chat_id: str,
    data: TitleInput,
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> TitleResponse:
    """Rename a chat."""
    title = await service.rename_chat(chat_id, caller_id, data.title)
    return TitleResponse(title=title)


@router.patch("/{chat_id}", response_model=FavoriteResponse)
async def set_favorite(
    chat_id: str,
    data: FavoriteInput,
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> FavoriteResponse:
    """Mark or unmark a chat as favorite."""
    favorite = await service.set_favorite(chat_id, caller_id, data.favorite)
    return FavoriteResponse(favorite=favorite)


@router.delete("/{chat_id}", response_model=DeleteResponse)
async def delete_chat(
    chat_id: str,
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> DeleteResponse:
    """Delete a chat together with its messages."""
    deleted = await service.delete_chat(chat_id, caller_id)
    return DeleteResponse(deleted_messages=deleted)


@router.post(
    "/{chat_id}/messages",
    response_model=AppendResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def append_message(
    chat_id: str,
    data: MessageInput,
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> AppendResponse:
    """Append a message; the first one also titles the chat."""
    result = await service.append_message(chat_id, caller_id, data.content)
    return AppendResponse(
        id=result.message_id,
        chat=AppendedChat(id=result.chat_id, title=result.title),
    )


@router.get("/{chat_id}/messages", response_model=MessagePageResponse)
async def list_messages(
    chat_id: str,
    limit: int = Query(
        default=DEFAULT_PAGE_SIZE,
        description="Page size, clamped to 1-100",
    ),
    cursor: str | None = Query(
        default=None,
        max_length=64,
        description="Id of the last message of the previous page",
    ),
    caller_id: str = Depends(get_caller_id),
    service: ChatService = Depends(get_chat_service),
) -> MessagePageResponse:
    """Page backwards through a chat's history, newest first."""
    page = await service.list_messages(chat_id, caller_id, limit, cursor)
    return MessagePageResponse(
        items=[MessageResponse.from_message(message) for message in page.items],
        next_cursor=page.next_cursor,
    )
