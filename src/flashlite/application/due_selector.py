"""
Due-card selection.

Date-format contract: due dates are zero-padded ISO 8601 calendar dates
("YYYY-MM-DD"). Ordering compares the raw strings, which equals calendar
order only under that contract.
"""

import re
from collections.abc import Iterable
from datetime import date
from typing import TypeVar

from flashlite.domain.models import Card, SessionCard

T = TypeVar("T", Card, SessionCard)

ISO_DATE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def is_due(due_date: str | None, today: date) -> bool:
    """
    True when ``due_date`` is on or before ``today``.

    An unparsable date counts as due so a malformed card is surfaced rather
    than hidden forever.
    """
    if not isinstance(due_date, str) or not ISO_DATE.fullmatch(due_date):
        return True
    try:
        due = date.fromisoformat(due_date)
    except ValueError:
        return True
    return due <= today


def _card_of(item: Card | SessionCard) -> Card:
    return item.card if isinstance(item, SessionCard) else item


def due_cards(all_cards: Iterable[T], deck_id: str, today: date) -> list[T]:
    """
    Cards of ``deck_id`` due by ``today``, earliest due first.

    Accepts plain cards or session cards; ties keep collection order.
    """
    selected = [
        item
        for item in all_cards
        if _card_of(item).deck_id == deck_id and is_due(_card_of(item).due_date, today)
    ]
    return sorted(selected, key=lambda item: _card_of(item).due_date)
