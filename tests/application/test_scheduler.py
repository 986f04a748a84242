from datetime import date

import pytest

from flashlite.application.scheduler import apply_rating, next_interval
from flashlite.domain.models import Card, Rating

TODAY = date(2030, 1, 1)


def _card(interval):
    return Card(id="c1", deck_id="d1", front="f", back="b", interval_days=interval, due_date="2029-12-31")


@pytest.mark.parametrize("interval", [0, 1, 2, 3, 5, 10, 37, 365])
def test_intervals_are_monotonic_in_rating(interval):
    again, hard, good, easy = (next_interval(interval, r) for r in Rating)

    assert again == 1
    assert again <= hard <= good <= easy


def test_good_on_first_interval():
    updated = apply_rating(_card(1), Rating.GOOD, TODAY)

    assert updated.interval_days == 2
    assert updated.due_date == "2030-01-03"
    assert updated.last_reviewed == "2030-01-01"


def test_easy_on_first_interval_is_two_days():
    assert apply_rating(_card(1), Rating.EASY, TODAY).interval_days == 2


def test_hard_grows_by_one_point_two():
    assert next_interval(10, Rating.HARD) == 12
    assert next_interval(1, Rating.HARD) == 1


def test_zero_interval_is_clamped_to_one():
    assert next_interval(0, Rating.GOOD) == 2
    assert next_interval(-4, Rating.EASY) == 2


def test_unknown_rating_behaves_like_good():
    assert next_interval(3, 9) == next_interval(3, Rating.GOOD) == 6


def test_apply_rating_keeps_identity_and_text():
    card = _card(4)
    updated = apply_rating(card, Rating.AGAIN, TODAY)

    assert (updated.id, updated.deck_id, updated.front, updated.back) == ("c1", "d1", "f", "b")
    assert updated.interval_days == 1
    assert updated.due_date == "2030-01-02"
    assert card.interval_days == 4


def test_apply_rating_is_deterministic():
    card = _card(3)
    assert apply_rating(card, Rating.HARD, TODAY) == apply_rating(card, Rating.HARD, TODAY)
