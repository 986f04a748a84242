from unittest.mock import MagicMock

import pytest
from conftest import card_doc

from flashlite.application.subscriptions import AuthGate, SubscriptionManager, new_token
from flashlite.domain.models import Principal
from flashlite.domain.ports import CollectionQuery, Scope, ScopeKind


@pytest.fixture
def manager(backend):
    return SubscriptionManager(backend, backend)


def test_new_token_is_prefixed_and_unique():
    a, b = new_token(), new_token()
    assert a.startswith("sub_")
    assert a != b


def test_replacement_leaves_exactly_one_live_subscription(manager, backend):
    seen = []
    manager.start(Scope.cards("A"), CollectionQuery("cards", {"deckId": "A"}), seen.append, MagicMock())
    first = backend.handle_for(ScopeKind.CARDS_FOR_DECK)

    manager.start(Scope.cards("B"), CollectionQuery("cards", {"deckId": "B"}), seen.append, MagicMock())
    second = backend.handle_for(ScopeKind.CARDS_FOR_DECK)

    assert first in backend.cancelled
    assert list(backend.subs) == [second]
    assert manager.active(ScopeKind.CARDS_FOR_DECK).scope.deck_id == "B"


def test_delayed_callback_from_replaced_subscription_is_ignored(manager, backend):
    cached = {}

    def on_items(docs):
        cached["cards"] = [d.id for d in docs]

    manager.start(Scope.cards("A"), CollectionQuery("cards", {"deckId": "A"}), on_items, MagicMock())
    stale = backend.handle_for(ScopeKind.CARDS_FOR_DECK)
    manager.start(Scope.cards("B"), CollectionQuery("cards", {"deckId": "B"}), on_items, MagicMock())
    fresh = backend.handle_for(ScopeKind.CARDS_FOR_DECK)

    backend.emit(fresh, [card_doc("b1", deck_id="B")])
    backend.emit(stale, [card_doc("a1", deck_id="A")])

    assert cached["cards"] == ["b1"]


def test_stale_error_is_ignored(manager, backend):
    on_error = MagicMock()
    manager.start(Scope.decks(), CollectionQuery("decks"), MagicMock(), on_error)
    stale = backend.handle_for(ScopeKind.DECKS_FOR_USER)
    manager.stop(ScopeKind.DECKS_FOR_USER)

    backend.fail(stale, "permission denied")

    on_error.assert_not_called()


def test_stop_is_idempotent(manager, backend):
    manager.start(Scope.decks(), CollectionQuery("decks"), MagicMock(), MagicMock())

    manager.stop(ScopeKind.DECKS_FOR_USER)
    manager.stop(Scope.decks())
    manager.stop(ScopeKind.CARDS_FOR_DECK)

    assert len(backend.cancelled) == 1
    assert not manager.is_active(ScopeKind.DECKS_FOR_USER)


def test_auth_scope_needs_start_auth(manager):
    with pytest.raises(ValueError):
        manager.start(Scope.auth(), CollectionQuery("x"), MagicMock(), MagicMock())


def test_stop_collections_keeps_auth_listener(manager, backend):
    manager.start_auth(MagicMock())
    manager.start(Scope.decks(), CollectionQuery("decks"), MagicMock(), MagicMock())
    manager.start(Scope.cards("A"), CollectionQuery("cards"), MagicMock(), MagicMock())

    manager.stop_collections()

    assert manager.is_active(ScopeKind.AUTH_STATE)
    assert not manager.is_active(ScopeKind.DECKS_FOR_USER)
    assert not manager.is_active(ScopeKind.CARDS_FOR_DECK)
    assert backend.auth_listeners

    manager.stop_all()
    assert not backend.auth_listeners


# --- AuthGate ---


@pytest.fixture
def gate(manager):
    return AuthGate(manager, MagicMock(), MagicMock())


def test_gate_fires_only_on_transitions(gate, backend):
    gate.start()
    alice = Principal("alice", "alice@example.com")

    backend.emit_auth(alice)
    backend.emit_auth(alice)
    backend.emit_auth(None)
    backend.emit_auth(None)

    gate._on_logged_in.assert_called_once_with(alice)
    gate._on_logged_out.assert_called_once()


def test_logout_stops_collection_scopes(gate, manager, backend):
    gate.start()
    backend.emit_auth(Principal("alice"))
    manager.start(Scope.decks(), CollectionQuery("decks"), MagicMock(), MagicMock())

    backend.emit_auth(None)

    assert not manager.is_active(ScopeKind.DECKS_FOR_USER)
    assert manager.is_active(ScopeKind.AUTH_STATE)


def test_account_switch_is_logout_then_login(gate, backend):
    gate.start()
    backend.emit_auth(Principal("alice"))
    backend.emit_auth(Principal("bob"))

    assert gate._on_logged_in.call_count == 2
    gate._on_logged_out.assert_called_once()
    assert gate.principal.uid == "bob"


def test_gate_start_twice_keeps_one_listener(gate, backend):
    gate.start()
    gate.start()
    assert len(backend.auth_listeners) == 1
