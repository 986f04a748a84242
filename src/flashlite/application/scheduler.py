"""
Interval scheduler.

Pure computation: given a card and a rating, produce the card's next interval
and due date. No I/O; "today" is injectable for deterministic results.
"""

import dataclasses
import math
from datetime import date, timedelta

from flashlite.domain.constants import (
    EASY_MIN_INTERVAL_DAYS,
    EASY_MULTIPLIER,
    GOOD_MULTIPLIER,
    HARD_MULTIPLIER,
    MIN_INTERVAL_DAYS,
)
from flashlite.domain.models import Card, Rating


def next_interval(interval_days: int, rating: int | Rating) -> int:
    """
    Compute the interval that follows ``interval_days`` for a rating.

    AGAIN resets to one day; HARD, GOOD and EASY grow the clamped base by
    1.2x, 2x and 2.5x. EASY never schedules sooner than two days.
    """
    base = max(MIN_INTERVAL_DAYS, interval_days)
    rating = Rating.normalize(rating)

    if rating is Rating.AGAIN:
        return MIN_INTERVAL_DAYS
    if rating is Rating.HARD:
        return max(MIN_INTERVAL_DAYS, math.floor(base * HARD_MULTIPLIER))
    if rating is Rating.EASY:
        return max(EASY_MIN_INTERVAL_DAYS, math.floor(base * EASY_MULTIPLIER))
    return max(MIN_INTERVAL_DAYS, math.floor(base * GOOD_MULTIPLIER))


def apply_rating(card: Card, rating: int | Rating, today: date | None = None) -> Card:
    """Return a copy of ``card`` rescheduled for ``rating`` as of ``today``."""
    today = today or date.today()
    interval = next_interval(card.interval_days, rating)
    return dataclasses.replace(
        card,
        interval_days=interval,
        due_date=(today + timedelta(days=interval)).isoformat(),
        last_reviewed=today.isoformat(),
    )
