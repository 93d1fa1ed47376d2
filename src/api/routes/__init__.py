"""API routes."""

from src.api.routes import chats, health

__all__ = [
    "chats",
    "health",
]
