"""
Review session state machine.

A session snapshots the due cards of one deck when it is built and then
works through that fixed queue. Live collection updates never touch the
queue; only ``restart()`` takes a fresh snapshot.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import date
from enum import Enum

from flashlite.application.due_selector import due_cards
from flashlite.application.scheduler import apply_rating
from flashlite.domain.errors import NotFound
from flashlite.domain.models import Card, Rating, SessionCard

logger = logging.getLogger(__name__)

CardWriter = Callable[[str, Card], None]


class SessionPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class ReviewSession:
    """
    Queue of due session cards for one deck, driven by ratings.

    Args:
        deck_id: Deck under review.
        write: Fire-and-forget sink for rescheduled cards, keyed by document key.
        today: Clock returning the local calendar date.
    """

    def __init__(
        self,
        deck_id: str,
        write: CardWriter,
        today: Callable[[], date] = date.today,
    ):
        self.deck_id = deck_id
        self._write = write
        self._today = today
        self.phase = SessionPhase.UNINITIALIZED
        self._queue: list[SessionCard] = []
        self.counters: dict[Rating, int] = dict.fromkeys(Rating, 0)
        self.reviewed: list[SessionCard] = []
        self.last_result = ""

    @property
    def queue(self) -> tuple[SessionCard, ...]:
        return tuple(self._queue)

    @property
    def head(self) -> SessionCard | None:
        return self._queue[0] if self._queue else None

    @property
    def progress(self) -> tuple[int, int]:
        """(reviewed, total) for the current run."""
        done = len(self.reviewed)
        return done, done + len(self._queue)

    def build(self, live_cards: Sequence[SessionCard]) -> bool:
        """
        Take the entry snapshot. Runs once; later calls are ignored.

        Returns True when this call built the queue.
        """
        if self.phase is not SessionPhase.UNINITIALIZED:
            logger.debug(f"[session] deck={self.deck_id} already built, ignoring snapshot")
            return False
        self._snapshot(live_cards)
        return True

    def restart(self, live_cards: Sequence[SessionCard]) -> None:
        """Rebuild from the current live cards and reset the counters."""
        self.counters = dict.fromkeys(Rating, 0)
        self.reviewed = []
        self.last_result = ""
        self._snapshot(live_cards)

    def rate(self, key: str, rating: int | Rating) -> Card:
        """
        Rate the queued card ``key`` and drop it from the queue.

        Raises:
            NotFound: ``key`` is not queued, e.g. it was already rated.
        """
        index = next((i for i, sc in enumerate(self._queue) if sc.key == key), None)
        if index is None:
            raise NotFound(f"Card {key} is not in the review queue")

        rating = Rating.normalize(rating)
        session_card = self._queue[index]
        updated = apply_rating(session_card.card, rating, self._today())
        self._write(session_card.key, updated)
        # The queue only changes once the write was handed off.
        del self._queue[index]

        self.reviewed.append(SessionCard(key=session_card.key, card=updated))
        self.counters[rating] += 1
        self.last_result = f"Next due: {updated.due_date}"

        if not self._queue:
            self.phase = SessionPhase.EXHAUSTED
            logger.info(f"[session] deck={self.deck_id} exhausted after {len(self.reviewed)}")
        return updated

    def _snapshot(self, live_cards: Sequence[SessionCard]) -> None:
        self._queue = due_cards(live_cards, self.deck_id, self._today())
        self.phase = SessionPhase.ACTIVE if self._queue else SessionPhase.EXHAUSTED
        logger.debug(
            f"[session] deck={self.deck_id} snapshot={len(self._queue)} phase={self.phase.value}"
        )
