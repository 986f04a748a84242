from datetime import date
from unittest.mock import MagicMock

import pytest
from conftest import make_card

from flashlite.application.review_session import ReviewSession, SessionPhase
from flashlite.domain.errors import NotFound
from flashlite.domain.models import Rating, SessionCard

TODAY = date(2030, 1, 1)


def _live(*cards):
    return [SessionCard(key=c.id, card=c) for c in cards]


@pytest.fixture
def write():
    return MagicMock()


@pytest.fixture
def session(write):
    return ReviewSession("d1", write, today=lambda: TODAY)


def test_build_snapshots_due_cards_once(session):
    live = _live(make_card("1"), make_card("2", due="2031-01-01"), make_card("3", deck_id="d2"))

    assert session.build(live) is True
    assert session.phase is SessionPhase.ACTIVE
    assert [sc.key for sc in session.queue] == ["1"]

    assert session.build(_live(make_card("1"), make_card("4"))) is False
    assert [sc.key for sc in session.queue] == ["1"]


def test_empty_snapshot_is_exhausted(session):
    session.build([])
    assert session.phase is SessionPhase.EXHAUSTED
    assert session.head is None
    assert session.progress == (0, 0)


def test_queue_is_isolated_from_live_updates(session):
    live = _live(make_card("1"), make_card("2"))
    session.build(live)

    live.append(SessionCard("3", make_card("3")))
    live.pop(0)

    assert [sc.key for sc in session.queue] == ["1", "2"]


def test_rate_advances_and_counts(session, write):
    session.build(_live(make_card("1"), make_card("2")))

    updated = session.rate("1", Rating.GOOD)

    assert updated.interval_days == 2
    write.assert_called_once_with("1", updated)
    assert session.head.key == "2"
    assert session.counters[Rating.GOOD] == 1
    assert session.progress == (1, 2)
    assert session.last_result == "Next due: 2030-01-03"
    assert session.phase is SessionPhase.ACTIVE


def test_double_rate_raises_not_found(session, write):
    session.build(_live(make_card("1"), make_card("2")))
    session.rate("1", Rating.AGAIN)

    with pytest.raises(NotFound):
        session.rate("1", Rating.AGAIN)
    assert write.call_count == 1


def test_unknown_rating_is_counted_as_good(session):
    session.build(_live(make_card("1")))
    session.rate("1", 42)
    assert session.counters[Rating.GOOD] == 1


def test_restart_takes_fresh_snapshot_and_resets(session):
    session.build(_live(make_card("1")))
    session.rate("1", Rating.EASY)
    assert session.phase is SessionPhase.EXHAUSTED

    session.restart(_live(make_card("5"), make_card("6")))

    assert session.phase is SessionPhase.ACTIVE
    assert [sc.key for sc in session.queue] == ["5", "6"]
    assert session.counters == dict.fromkeys(Rating, 0)
    assert session.progress == (0, 2)
    assert session.last_result == ""


def test_spanish_deck_end_to_end(write):
    """One due card: review it Hard, the session exhausts, a restart stays empty."""
    spanish = make_card("c1", deck_id="spanish", interval=10, due="2030-01-01")
    live = _live(spanish)
    session = ReviewSession("spanish", write, today=lambda: TODAY)

    session.build(live)
    assert len(session.queue) == 1

    updated = session.rate("c1", Rating.HARD)
    assert updated.interval_days == 12
    assert updated.due_date == "2030-01-13"
    write.assert_called_once_with("c1", updated)
    assert session.queue == ()
    assert session.phase is SessionPhase.EXHAUSTED

    # The store has echoed the new schedule, so nothing is due any more.
    session.restart(_live(updated))
    assert session.queue == ()
    assert session.phase is SessionPhase.EXHAUSTED


def test_failed_write_leaves_queue_untouched(write, session):
    session.build(_live(make_card("1"), make_card("2")))
    write.side_effect = RuntimeError("offline")

    with pytest.raises(RuntimeError):
        session.rate("1", Rating.GOOD)

    assert [sc.key for sc in session.queue] == ["1", "2"]
    assert session.counters == dict.fromkeys(Rating, 0)
    assert session.progress == (0, 2)
    assert session.phase is SessionPhase.ACTIVE
