"""
Subscription management.

Owns at most one live subscription per scope slot. Starting a slot cancels
the previous subscription before registering the new one, and every delivered
callback is checked against the slot's current token so late emissions from
a replaced subscription never reach the caller.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ulid import ULID

from flashlite.domain.models import Document, Principal
from flashlite.domain.ports import (
    AuthCallback,
    AuthProvider,
    CollectionQuery,
    ErrorCallback,
    ItemsCallback,
    Scope,
    ScopeKind,
    Store,
)

logger = logging.getLogger(__name__)


def new_token() -> str:
    return f"sub_{ULID()}"


@dataclass(frozen=True)
class Subscription:
    scope: Scope
    token: str
    handle: Any
    cancel: Callable[[Any], None]


class SubscriptionManager:
    """
    Per-scope Inactive/Active state machine over the Store and AuthProvider ports.

    Each ScopeKind is one slot: cards for deck B replace cards for deck A.
    """

    def __init__(self, store: Store, auth: AuthProvider):
        self._store = store
        self._auth = auth
        self._active: dict[ScopeKind, Subscription] = {}
        # Set before the port is called so an early emission already has a token to match.
        self._current: dict[ScopeKind, str] = {}

    def start(
        self,
        scope: Scope,
        query: CollectionQuery,
        on_items: ItemsCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Cancel whatever holds the slot, then subscribe ``query`` under a fresh token."""
        if scope.kind is ScopeKind.AUTH_STATE:
            raise ValueError("Use start_auth() for the auth-state scope")

        self.stop(scope.kind)
        token = self._claim(scope.kind)

        def deliver_items(items: list[Document]) -> None:
            if self._is_current(scope.kind, token):
                on_items(items)

        def deliver_error(message: str) -> None:
            if self._is_current(scope.kind, token):
                on_error(message)

        handle = self._store.subscribe_collection(scope, query, deliver_items, deliver_error)
        sub = Subscription(scope=scope, token=token, handle=handle, cancel=self._store.cancel)
        self._active[scope.kind] = sub
        logger.debug(f"[subs] started {scope.kind.value} token={token} path={query.path}")
        return sub

    def start_auth(self, on_change: AuthCallback) -> Subscription:
        """Listen to principal changes, replacing any previous auth listener."""
        kind = ScopeKind.AUTH_STATE
        self.stop(kind)
        token = self._claim(kind)

        def deliver(principal: Principal | None) -> None:
            if self._is_current(kind, token):
                on_change(principal)

        handle = self._auth.listen(deliver)
        sub = Subscription(scope=Scope.auth(), token=token, handle=handle, cancel=self._auth.unlisten)
        self._active[kind] = sub
        logger.debug(f"[subs] started auth token={token}")
        return sub

    def stop(self, kind: ScopeKind | Scope) -> None:
        """Cancel the slot's subscription if there is one."""
        if isinstance(kind, Scope):
            kind = kind.kind
        self._current.pop(kind, None)
        sub = self._active.pop(kind, None)
        if sub is None:
            return
        sub.cancel(sub.handle)
        logger.debug(f"[subs] stopped {kind.value} token={sub.token}")

    def stop_collections(self) -> None:
        """Stop every collection slot, leaving the auth listener in place."""
        self.stop(ScopeKind.DECKS_FOR_USER)
        self.stop(ScopeKind.CARDS_FOR_DECK)

    def stop_all(self) -> None:
        for kind in list(ScopeKind):
            self.stop(kind)

    def active(self, kind: ScopeKind) -> Subscription | None:
        return self._active.get(kind)

    def is_active(self, kind: ScopeKind) -> bool:
        return kind in self._active

    def _claim(self, kind: ScopeKind) -> str:
        token = new_token()
        self._current[kind] = token
        return token

    def _is_current(self, kind: ScopeKind, token: str) -> bool:
        if self._current.get(kind) == token:
            return True
        logger.debug(f"[subs] suppressed stale {kind.value} callback token={token}")
        return False


class AuthGate:
    """
    Tracks LoggedIn/LoggedOut and fires the transition hooks.

    Only real transitions fire: repeated reports of the same state are ignored.
    """

    def __init__(
        self,
        subscriptions: SubscriptionManager,
        on_logged_in: Callable[[Principal], None],
        on_logged_out: Callable[[], None],
    ):
        self._subs = subscriptions
        self._on_logged_in = on_logged_in
        self._on_logged_out = on_logged_out
        self.principal: Principal | None = None

    @property
    def is_logged_in(self) -> bool:
        return self.principal is not None

    def start(self) -> None:
        if self._subs.is_active(ScopeKind.AUTH_STATE):
            return
        self._subs.start_auth(self.handle_change)

    def stop(self) -> None:
        self._subs.stop(ScopeKind.AUTH_STATE)

    def handle_change(self, principal: Principal | None) -> None:
        previous = self.principal
        if previous is not None and principal is not None and previous.uid != principal.uid:
            # A different account took over: treat it as a sign-out followed by a sign-in.
            self.handle_change(None)
            previous = None

        was_logged_in = previous is not None
        self.principal = principal

        if principal is not None and not was_logged_in:
            logger.info(f"[auth] signed in as {principal.email or principal.uid}")
            self._on_logged_in(principal)
        elif principal is None and was_logged_in:
            logger.info("[auth] signed out")
            self._subs.stop_collections()
            self._on_logged_out()
