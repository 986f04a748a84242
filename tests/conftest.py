import itertools
from datetime import date

import pytest

from flashlite.domain.models import Card, Document, Operation, Principal, WriteResult
from flashlite.domain.ports import AuthProvider, CollectionQuery, Store

TODAY = date(2030, 1, 1)


class FakeBackend(Store, AuthProvider):
    """
    Store + AuthProvider double that only records.

    Nothing is delivered on its own: tests push items, errors and auth
    changes through the captured callbacks, including callbacks of
    subscriptions that were already cancelled.
    """

    def __init__(self, principal: Principal | None = Principal(uid="u1", email="me@example.com")):
        self.principal = principal
        self.subs: dict[int, tuple] = {}
        self.all_subs: dict[int, tuple] = {}
        self.cancelled: list[int] = []
        self.auth_listeners: dict[int, object] = {}
        self.mutations: list[tuple[str, Operation, dict | None]] = []
        self.results: list[WriteResult] = []
        self.documents: dict[str, list[Document]] = {}
        self.fetch_error: Exception | None = None
        self._handles = itertools.count(1)

    # Store
    def subscribe_collection(self, scope, query, on_items, on_error):
        handle = next(self._handles)
        self.subs[handle] = (scope, query, on_items, on_error)
        self.all_subs[handle] = self.subs[handle]
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)
        self.subs.pop(handle, None)

    async def fetch_collection(self, query: CollectionQuery):
        if self.fetch_error:
            raise self.fetch_error
        return [d for d in self.documents.get(query.path, []) if query.matches(d.data)]

    async def mutate(self, path, operation, payload=None):
        self.mutations.append((path, operation, payload))
        if self.results:
            return self.results.pop(0)
        return WriteResult.success(str(len(self.mutations)))

    # AuthProvider
    def current_principal(self):
        return self.principal

    def listen(self, on_change):
        handle = next(self._handles)
        self.auth_listeners[handle] = on_change
        return handle

    def unlisten(self, handle):
        self.auth_listeners.pop(handle, None)

    async def sign_up(self, email, password):
        return await self.sign_in(email, password)

    async def sign_in(self, email, password):
        if password == "wrong":
            return WriteResult.failure("Invalid email or password")
        self.principal = Principal(uid=email, email=email)
        return WriteResult.success(email)

    async def sign_out(self):
        self.principal = None
        return WriteResult.success()

    # Test helpers
    def handle_for(self, kind):
        return next((h for h, s in self.subs.items() if s[0].kind is kind), None)

    def emit(self, handle, docs):
        self.all_subs[handle][2](docs)

    def fail(self, handle, message):
        self.all_subs[handle][3](message)

    def emit_auth(self, principal=None):
        for callback in list(self.auth_listeners.values()):
            callback(principal)


def card_doc(doc_id, deck_id="d1", front="hola", back="hello", interval=1, due="2030-01-01"):
    return Document(
        id=doc_id,
        data={
            "deckId": deck_id,
            "front": front,
            "back": back,
            "intervalDays": interval,
            "dueDate": due,
            "lastReviewed": None,
        },
    )


def make_card(card_id="c1", deck_id="d1", interval=1, due="2030-01-01", front="hola", back="hello"):
    return Card(
        id=card_id,
        deck_id=deck_id,
        front=front,
        back=back,
        interval_days=interval,
        due_date=due,
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Isolate config and data files from the real home directory
    monkeypatch.setenv("HOME", str(home))
    for key in ("BACKEND", "DATA_FILE", "STORE_URL", "EMAIL", "PASSWORD", "LOCAL_USER"):
        monkeypatch.delenv(f"FLASHLITE_{key}", raising=False)
    return home
