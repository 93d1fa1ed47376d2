"""Ordering of a user's chat list into favorites and the rest."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.core.datetime_utils import EPOCH, parse_timestamp


@dataclass(frozen=True)
class ChatListProjection:
    """Chats split into the favorites section and everything else."""

    favorites: list[Any] = field(default_factory=list)
    others: list[Any] = field(default_factory=list)

    @property
    def ordered(self) -> list[Any]:
        """Favorites followed by the others, as rendered top to bottom."""
        return [*self.favorites, *self.others]


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def coerce_timestamp(value: Any) -> datetime:
    """Sortable timestamp; missing or unparseable values sort as the epoch."""
    return parse_timestamp(value) or EPOCH


def _favorite_key(record: Any) -> datetime:
    favorited_at = parse_timestamp(_field(record, "favorited_at"))
    if favorited_at is not None:
        return favorited_at
    return coerce_timestamp(_field(record, "updated_at"))


def _recency_key(record: Any) -> datetime:
    return coerce_timestamp(_field(record, "updated_at"))


def project_chats(records: Iterable[Any]) -> ChatListProjection:
    """
    Partition and sort chat records for display.

    Accepts ORM rows, dataclasses, or mappings exposing ``favorite``,
    ``favorited_at`` and ``updated_at``. Favorites are ordered by when they
    were favorited (falling back to ``updated_at``), the others by
    ``updated_at``; both newest first. Equal keys keep their input order.
    """
    favorites: list[Any] = []
    others: list[Any] = []
    for record in records:
        (favorites if _field(record, "favorite") else others).append(record)

    return ChatListProjection(
        favorites=sorted(favorites, key=_favorite_key, reverse=True),
        others=sorted(others, key=_recency_key, reverse=True),
    )
