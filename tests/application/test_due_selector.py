from datetime import date

from conftest import make_card

from flashlite.application.due_selector import due_cards, is_due
from flashlite.domain.models import SessionCard

TODAY = date(2030, 1, 1)


def test_is_due():
    assert is_due("2024-01-01", TODAY) is True
    assert is_due("2030-01-01", TODAY) is True
    assert is_due("2030-01-02", TODAY) is False


def test_is_due_fails_open_on_bad_dates():
    assert is_due("", TODAY) is True
    assert is_due(None, TODAY) is True
    assert is_due("01/02/2031", TODAY) is True
    assert is_due("2031-02-30", TODAY) is True


def test_is_due_only_accepts_extended_calendar_dates():
    # Basic and week-date ISO forms are not part of the stored format.
    assert is_due("20300102", TODAY) is True
    assert is_due("2030-W05-1", TODAY) is True
    assert is_due("2030-1-02", TODAY) is True
    assert is_due(" 2030-01-02", TODAY) is True


def test_due_cards_filters_deck_and_date():
    cards = [
        make_card("a", deck_id="d1", due="2029-12-01"),
        make_card("b", deck_id="d2", due="2029-12-01"),
        make_card("c", deck_id="d1", due="2031-01-01"),
    ]
    assert [c.id for c in due_cards(cards, "d1", TODAY)] == ["a"]


def test_due_cards_orders_earliest_first_and_is_stable():
    cards = [
        make_card("late", due="2029-12-31"),
        make_card("tie1", due="2029-06-01"),
        make_card("early", due="2029-01-01"),
        make_card("tie2", due="2029-06-01"),
    ]
    assert [c.id for c in due_cards(cards, "d1", TODAY)] == ["early", "tie1", "tie2", "late"]


def test_due_cards_accepts_session_cards():
    items = [SessionCard("k2", make_card("2", due="2029-05-01")), SessionCard("k1", make_card("1"))]

    result = due_cards(items, "d1", TODAY)

    assert [sc.key for sc in result] == ["k2", "k1"]
