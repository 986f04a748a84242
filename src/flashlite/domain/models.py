"""
Domain models for decks, cards and review sessions.

These are pure data structures with no I/O or external dependencies.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any

logger = logging.getLogger(__name__)


class Rating(IntEnum):
    """Review outcome buckets, ordered from worst to best recall."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @classmethod
    def normalize(cls, value: "int | Rating") -> "Rating":
        """Map any value onto a Rating; unknown values fall back to GOOD."""
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            logger.warning(f"Unknown rating {value!r}, treating it as GOOD")
            return cls.GOOD


class Operation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class Document:
    """A raw item emitted by a Store: an opaque id plus its field map."""

    id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Deck:
    id: str
    name: str

    @classmethod
    def from_document(cls, doc: Document) -> "Deck":
        return cls(id=doc.id, name=str(doc.data.get("name") or ""))


@dataclass(frozen=True)
class Card:
    """
    A flashcard and its scheduling state.

    Attributes:
        id: Store document id.
        deck_id: Id of the owning deck.
        interval_days: Days until the next review; always >= 1 once scheduled.
        due_date: Zero-padded ISO calendar date ("YYYY-MM-DD").
        last_reviewed: ISO calendar date of the last rating, or None.
    """

    id: str
    deck_id: str
    front: str
    back: str
    interval_days: int = 1
    due_date: str = ""
    last_reviewed: str | None = None

    @classmethod
    def from_document(cls, doc: Document) -> "Card":
        data = doc.data
        try:
            interval = int(data.get("intervalDays"))
        except (TypeError, ValueError, OverflowError):
            interval = 1
        last_reviewed = data.get("lastReviewed")
        return cls(
            id=doc.id,
            deck_id=str(data.get("deckId") or ""),
            front=str(data.get("front") or ""),
            back=str(data.get("back") or ""),
            interval_days=interval,
            due_date=str(data.get("dueDate") or ""),
            last_reviewed=str(last_reviewed) if last_reviewed else None,
        )

    def to_payload(self) -> dict[str, Any]:
        """Field map written to the store (the document id is not part of it)."""
        return {
            "deckId": self.deck_id,
            "front": self.front,
            "back": self.back,
            "intervalDays": self.interval_days,
            "dueDate": self.due_date,
            "lastReviewed": self.last_reviewed,
        }


@dataclass(frozen=True)
class SessionCard:
    """
    A card captured into a review session.

    The key is the store document key and stays stable for the life of the
    session; the card is a frozen snapshot taken when the queue was built.
    """

    key: str
    card: Card


@dataclass(frozen=True)
class Principal:
    uid: str
    email: str | None = None


@dataclass(frozen=True)
class WriteResult:
    """Tagged Ok/Err outcome of a store call."""

    ok: bool
    error: str | None = None
    id: str | None = None

    @classmethod
    def success(cls, id: str | None = None) -> "WriteResult":
        return cls(ok=True, id=id)

    @classmethod
    def failure(cls, message: str) -> "WriteResult":
        return cls(ok=False, error=message)
