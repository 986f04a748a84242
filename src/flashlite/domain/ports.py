"""
Ports (interfaces) for the document store and the account provider.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .constants import CARDS_COLLECTION, DECKS_COLLECTION, USERS_COLLECTION
from .models import Document, Operation, Principal, WriteResult

ItemsCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[str], None]
AuthCallback = Callable[[Principal | None], None]


class ScopeKind(str, Enum):
    DECKS_FOR_USER = "decks"
    CARDS_FOR_DECK = "cards"
    AUTH_STATE = "auth"


@dataclass(frozen=True)
class Scope:
    """
    A logical subscription target.

    The kind names the slot a subscription occupies; ``deck_id`` only
    distinguishes values within the CARDS_FOR_DECK slot.
    """

    kind: ScopeKind
    deck_id: str | None = None

    @classmethod
    def decks(cls) -> "Scope":
        return cls(ScopeKind.DECKS_FOR_USER)

    @classmethod
    def cards(cls, deck_id: str) -> "Scope":
        return cls(ScopeKind.CARDS_FOR_DECK, deck_id)

    @classmethod
    def auth(cls) -> "Scope":
        return cls(ScopeKind.AUTH_STATE)


@dataclass(frozen=True)
class CollectionQuery:
    """A collection path plus equality filters and an optional ordering field."""

    path: str
    where: dict[str, Any] = field(default_factory=dict)
    order_by: str | None = None

    def matches(self, data: dict[str, Any]) -> bool:
        return all(data.get(k) == v for k, v in self.where.items())


def decks_path(uid: str) -> str:
    return f"{USERS_COLLECTION}/{uid}/{DECKS_COLLECTION}"


def cards_path(uid: str) -> str:
    return f"{USERS_COLLECTION}/{uid}/{CARDS_COLLECTION}"


class Store(ABC):
    """
    Port for a realtime document store.

    Implementations:
        - LocalStore: in-process documents with optional JSON persistence.
        - HttpStore: REST document service polled over httpx.

    Callbacks are always dispatched on the caller's event loop, never inline
    from ``subscribe_collection``.
    """

    @abstractmethod
    def subscribe_collection(
        self,
        scope: Scope,
        query: CollectionQuery,
        on_items: ItemsCallback,
        on_error: ErrorCallback,
    ) -> Any:
        """
        Start emitting the documents matching ``query``.

        ``on_items`` receives the full matching list each time it changes;
        ``on_error`` receives a human-readable message. Emissions continue
        until the returned handle is cancelled.
        """
        pass

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Stop a subscription. Idempotent; no callback fires after it returns."""
        pass

    @abstractmethod
    async def fetch_collection(self, query: CollectionQuery) -> list[Document]:
        """One-shot read of the documents matching ``query``. Raises on failure."""
        pass

    @abstractmethod
    async def mutate(
        self,
        path: str,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> WriteResult:
        """
        Insert into a collection path, or update/delete a document path.

        Never raises for store-side failures; they come back as
        ``WriteResult.failure``.
        """
        pass


class AuthProvider(ABC):
    """Port for the account provider that owns the signed-in principal."""

    @abstractmethod
    def current_principal(self) -> Principal | None:
        pass

    @abstractmethod
    def listen(self, on_change: AuthCallback) -> Any:
        """Register for principal changes. The current state is delivered once first."""
        pass

    @abstractmethod
    def unlisten(self, handle: Any) -> None:
        pass

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> WriteResult:
        pass

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> WriteResult:
        pass

    @abstractmethod
    async def sign_out(self) -> WriteResult:
        pass
