"""Domain errors surfaced by the notes API."""


class NoteError(Exception):
    """Base class for errors with a stable machine-readable kind."""

    kind = "note_error"
    status_code = 500
    default_message = "Unexpected error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str]:
        """Serialize the error for an API response."""
        return {"error": self.kind, "detail": self.message}


class InvalidContentError(NoteError):
    """Message content is missing or blank."""

    kind = "invalid_content"
    status_code = 400
    default_message = "Message content must not be empty"


class InvalidTitleError(NoteError):
    """Chat title failed validation."""

    kind = "invalid_title"
    status_code = 400
    default_message = "Title must be a non-empty string"


class ChatNotFoundError(NoteError):
    """Referenced chat does not exist."""

    kind = "chat_not_found"
    status_code = 404
    default_message = "Chat not found"


class ChatForbiddenError(NoteError):
    """Caller does not own the chat."""

    kind = "forbidden"
    status_code = 403
    default_message = "Chat belongs to another user"


class TransactionFailedError(NoteError):
    """Storage conflict, timeout, or unavailability."""

    kind = "transaction_failed"
    status_code = 503
    default_message = "Storage transaction failed"


class InvalidRequestError(NoteError):
    """Request body or parameters could not be interpreted."""

    kind = "invalid_request"
    status_code = 400
    default_message = "Malformed request"
