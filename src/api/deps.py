"""API dependencies."""

from fastapi import Depends, Header, HTTPException, Request

from src.core.logging import get_logger, log_security_event
from src.core.security import InvalidTokenError, verify_access_token
from src.db.session import async_session_maker
from src.services.chat_service import ChatService
from src.services.chat_store import ChatStore

logger = get_logger(__name__)

_chat_store = ChatStore(async_session_maker)


def get_chat_store() -> ChatStore:
    """Get the application-wide storage client."""
    return _chat_store


def get_chat_service(store: ChatStore = Depends(get_chat_store)) -> ChatService:
    """Get a chat service bound to the storage client."""
    return ChatService(store)


async def get_caller_id(
    request: Request,
    authorization: str | None = Header(default=None),
) -> str:
    """Resolve the caller identity from an ``Authorization: Bearer`` header."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        log_security_event(
            logger,
            "Missing bearer token",
            details={
                "path": request.url.path,
                "method": request.method,
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        raise HTTPException(
            status_code=401,
            detail="missing_bearer_token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return verify_access_token(token.strip())
    except InvalidTokenError as e:
        raise HTTPException(
            status_code=401,
            detail="invalid_token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e
