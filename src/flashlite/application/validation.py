"""Input checks run before any store call."""

from collections.abc import Iterable

from flashlite.domain.errors import ValidationError
from flashlite.domain.models import Deck, SessionCard


def validate_deck_name(name: str, decks: Iterable[Deck], editing_id: str | None = None) -> str:
    """Return the trimmed name, or raise if it is blank or taken by another deck."""
    name = name.strip()
    if not name:
        raise ValidationError("Name can't be empty")
    if any(d.name.casefold() == name.casefold() and d.id != editing_id for d in decks):
        raise ValidationError("Deck name already exists")
    return name


def validate_card_text(
    front: str,
    back: str,
    cards: Iterable[SessionCard],
    editing_id: str | None = None,
) -> tuple[str, str]:
    """Return trimmed (front, back); both must be set and not duplicate another card."""
    front = front.strip()
    back = back.strip()
    if not front or not back:
        raise ValidationError("Front and Back can't be empty")

    for sc in cards:
        if sc.key == editing_id:
            continue
        if sc.card.front.casefold() == front.casefold() and sc.card.back.casefold() == back.casefold():
            raise ValidationError("This card already exists.")
    return front, back
