"""Title and preview derivation for chat metadata.

Lengths are measured in UTF-16 code units, so characters outside the Basic
Multilingual Plane (most emoji) count twice. Clipping never splits such a
character; it is dropped whole when it would straddle the limit.
"""

import re

from src.db.models.chat import UNTITLED_TITLE

TITLE_MAX_LENGTH = 40
PREVIEW_MAX_LENGTH = 60
ELLIPSIS = "…"

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs (including newlines) to single spaces and trim."""
    return _WHITESPACE_RUN.sub(" ", text or "").strip()


def code_units(text: str) -> int:
    """Length of ``text`` in UTF-16 code units."""
    return len(text.encode("utf-16-le")) // 2


def _clip(text: str, max_length: int) -> str:
    if code_units(text) <= max_length:
        return text
    units = 0
    for index, char in enumerate(text):
        units += 2 if ord(char) > 0xFFFF else 1
        if units > max_length:
            return text[:index] + ELLIPSIS
    return text


def derive_title(text: str) -> str:
    """One-line title from message text, or the untitled placeholder when blank."""
    normalized = normalize_text(text)
    if not normalized:
        return UNTITLED_TITLE
    return _clip(normalized, TITLE_MAX_LENGTH)


def derive_preview(text: str) -> str:
    """Clipped single-line preview of message text."""
    return _clip(normalize_text(text), PREVIEW_MAX_LENGTH)
