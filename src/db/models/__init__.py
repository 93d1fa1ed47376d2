"""Database models."""

from src.db.models.chat import UNTITLED_TITLE, Chat, ChatMessage, MessageRole

__all__ = [
    "UNTITLED_TITLE",
    "Chat",
    "ChatMessage",
    "MessageRole",
]
