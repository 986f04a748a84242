"""
Local Store: offline adapter keeping documents in process.

Implements both Store and AuthProvider. Document ids come from a
monotonically increasing counter, and the whole store can be persisted to a
JSON file after every mutation. Listener callbacks are always scheduled on
the running event loop, never invoked inline.
"""

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from werkzeug.security import check_password_hash, generate_password_hash

from flashlite.domain.models import Document, Operation, Principal, WriteResult
from flashlite.domain.ports import (
    AuthCallback,
    AuthProvider,
    CollectionQuery,
    ErrorCallback,
    ItemsCallback,
    Scope,
    Store,
)


@dataclass
class _Listener:
    query: CollectionQuery
    on_items: ItemsCallback
    on_error: ErrorCallback


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LocalStore(Store, AuthProvider):
    """In-process document store with optional JSON persistence and one local principal."""

    def __init__(self, data_file: Path | None = None, local_user: str | None = "local"):
        self.logger = logging.getLogger(__name__)
        self.data_file = data_file
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._next_id = 1
        self._accounts: dict[str, str] = {}
        self._principal = Principal(uid=local_user) if local_user else None

        self._handles = itertools.count(1)
        self._listeners: dict[int, _Listener] = {}
        self._auth_listeners: dict[int, AuthCallback] = {}

        if data_file is not None and data_file.exists():
            self.load()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Replace in-memory contents with the JSON file's."""
        raw = json.loads(self.data_file.read_text(encoding="utf-8"))
        self._collections = raw.get("collections", {})
        self._next_id = int(raw.get("next_id", 1))
        self._accounts = raw.get("accounts", {})
        self.logger.debug(
            f"[local] loaded {sum(len(c) for c in self._collections.values())} documents "
            f"from {self.data_file}"
        )

    def save(self) -> None:
        if self.data_file is None:
            return
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "next_id": self._next_id,
            "collections": self._collections,
            "accounts": self._accounts,
        }
        self.data_file.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

    def clear(self) -> None:
        """Drop every document and remove the JSON file."""
        self._collections = {}
        self._next_id = 1
        if self.data_file is not None and self.data_file.exists():
            self.data_file.unlink()
        for path in {lst.query.path for lst in self._listeners.values()}:
            self._notify(path)

    # ------------------------------------------------------------------
    # Store
    # ------------------------------------------------------------------

    def subscribe_collection(
        self,
        scope: Scope,
        query: CollectionQuery,
        on_items: ItemsCallback,
        on_error: ErrorCallback,
    ) -> int:
        handle = next(self._handles)
        self._listeners[handle] = _Listener(query, on_items, on_error)
        asyncio.get_running_loop().call_soon(self._emit, handle)
        self.logger.debug(f"[local] subscribe #{handle} {scope.kind.value} {query.path}")
        return handle

    def cancel(self, handle: Any) -> None:
        self._listeners.pop(handle, None)

    async def fetch_collection(self, query: CollectionQuery) -> list[Document]:
        return self._query(query)

    async def mutate(
        self,
        path: str,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> WriteResult:
        if self._principal is None:
            return WriteResult.failure("You need to be logged in")

        if operation is Operation.INSERT:
            doc_id = str(self._next_id)
            self._next_id += 1
            now = _now()
            data = dict(payload or {})
            data.update(createdAt=now, updatedAt=now)
            self._collections.setdefault(path, {})[doc_id] = data
            collection = path
        else:
            collection, _, doc_id = path.rpartition("/")
            docs = self._collections.get(collection, {})
            if operation is Operation.UPDATE:
                if doc_id not in docs:
                    return WriteResult.failure(f"No document to update: {path}")
                docs[doc_id] = {**docs[doc_id], **(payload or {}), "updatedAt": _now()}
            else:
                docs.pop(doc_id, None)

        self.save()
        self.logger.debug(f"[local] {operation.value} {collection}/{doc_id}")
        self._notify(collection)
        return WriteResult.success(doc_id)

    def _query(self, query: CollectionQuery) -> list[Document]:
        docs = self._collections.get(query.path, {})
        matches = [
            Document(id=doc_id, data=dict(data))
            for doc_id, data in docs.items()
            if query.matches(data)
        ]
        if query.order_by:
            matches.sort(key=lambda d: str(d.data.get(query.order_by) or ""))
        return matches

    def _notify(self, collection: str) -> None:
        loop = asyncio.get_running_loop()
        for handle, listener in list(self._listeners.items()):
            if listener.query.path == collection:
                loop.call_soon(self._emit, handle)

    def _emit(self, handle: int) -> None:
        listener = self._listeners.get(handle)
        if listener is None:
            return
        listener.on_items(self._query(listener.query))

    # ------------------------------------------------------------------
    # AuthProvider
    # ------------------------------------------------------------------

    def current_principal(self) -> Principal | None:
        return self._principal

    def listen(self, on_change: AuthCallback) -> int:
        handle = next(self._handles)
        self._auth_listeners[handle] = on_change
        asyncio.get_running_loop().call_soon(self._emit_auth, handle, self._principal)
        return handle

    def unlisten(self, handle: Any) -> None:
        self._auth_listeners.pop(handle, None)

    async def sign_up(self, email: str, password: str) -> WriteResult:
        email = email.strip().lower()
        if not email or not password:
            return WriteResult.failure("Email and password are required")
        if email in self._accounts:
            return WriteResult.failure("The email address is already in use")
        self._accounts[email] = generate_password_hash(password)
        self.save()
        self._set_principal(Principal(uid=email, email=email))
        return WriteResult.success(email)

    async def sign_in(self, email: str, password: str) -> WriteResult:
        email = email.strip().lower()
        stored = self._accounts.get(email)
        if stored is None or not check_password_hash(stored, password):
            return WriteResult.failure("Invalid email or password")
        self._set_principal(Principal(uid=email, email=email))
        return WriteResult.success(email)

    async def sign_out(self) -> WriteResult:
        self._set_principal(None)
        return WriteResult.success()

    def _set_principal(self, principal: Principal | None) -> None:
        self._principal = principal
        loop = asyncio.get_running_loop()
        for handle in list(self._auth_listeners):
            loop.call_soon(self._emit_auth, handle, principal)

    def _emit_auth(self, handle: int, principal: Principal | None) -> None:
        callback = self._auth_listeners.get(handle)
        if callback is not None:
            callback(principal)

    async def close(self) -> None:
        """Drop every listener. Documents stay in memory and on disk."""
        self._listeners.clear()
        self._auth_listeners.clear()
