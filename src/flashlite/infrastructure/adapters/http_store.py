"""
HTTP Store: adapter for a REST document service over httpx.

Implements both Store and AuthProvider. Sign-in and sign-up return a bearer
token that is sent with every later request.
"""

import asyncio
import itertools
import logging
from typing import Any

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from flashlite.domain.constants import POLL_INTERVAL, REQUEST_TIMEOUT
from flashlite.domain.errors import FlashliteError, ListenFailed, WriteFailed
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


class DocumentModel(BaseModel):
    id: str
    data: dict[str, Any] = Field(default_factory=dict)


class CollectionResponse(BaseModel):
    documents: list[DocumentModel] = Field(default_factory=list)


class InsertResponse(BaseModel):
    id: str


class AuthResponse(BaseModel):
    uid: str
    email: str | None = None
    id_token: str = Field(alias="idToken")


class HttpStore(Store, AuthProvider):
    """
    Adapter for a REST document service reached over httpx.

    Collections are read with GET, documents written with POST/PATCH/DELETE
    under ``{url}/{path}``. Subscriptions poll their query and emit whenever
    the result changes; a failed poll reports the error and ends that
    subscription.
    """

    def __init__(
        self,
        url: str = "http://127.0.0.1:8080",
        timeout: float = REQUEST_TIMEOUT,
        poll_interval: float = POLL_INTERVAL,
        client: httpx.AsyncClient | None = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.url = url.rstrip("/")
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._client = client
        self._principal: Principal | None = None
        self._token: str | None = None

        self._handles = itertools.count(1)
        self._polls: dict[int, asyncio.Task] = {}
        self._auth_listeners: dict[int, AuthCallback] = {}

        self.logger.debug(f"HttpStore initialized with url={self.url}")

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
        task = asyncio.get_running_loop().create_task(
            self._poll(handle, query, on_items, on_error)
        )
        self._polls[handle] = task
        task.add_done_callback(lambda _t, h=handle: self._polls.pop(h, None))
        self.logger.debug(f"[http] subscribe #{handle} {scope.kind.value} {query.path}")
        return handle

    def cancel(self, handle: Any) -> None:
        task = self._polls.pop(handle, None)
        if task is not None:
            task.cancel()

    async def _poll(
        self,
        handle: int,
        query: CollectionQuery,
        on_items: ItemsCallback,
        on_error: ErrorCallback,
    ) -> None:
        last: list[Document] | None = None
        while True:
            try:
                docs = await self.fetch_collection(query)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.warning(f"[http] subscription #{handle} on {query.path} failed: {e}")
                if handle in self._polls:
                    on_error(str(e))
                return

            if handle not in self._polls:
                return
            if docs != last:
                last = docs
                on_items(docs)
            await asyncio.sleep(self.poll_interval)

    async def fetch_collection(self, query: CollectionQuery) -> list[Document]:
        params = {f"where.{k}": v for k, v in query.where.items()}
        if query.order_by:
            params["orderBy"] = query.order_by

        data = await self._request("GET", query.path, params=params)
        response = CollectionResponse.model_validate(data or {})
        return [Document(id=d.id, data=d.data) for d in response.documents]

    async def mutate(
        self,
        path: str,
        operation: Operation,
        payload: dict[str, Any] | None = None,
    ) -> WriteResult:
        if self._token is None:
            return WriteResult.failure("You need to be logged in")

        try:
            if operation is Operation.INSERT:
                data = await self._request("POST", path, json=payload or {})
                return WriteResult.success(InsertResponse.model_validate(data).id)
            if operation is Operation.UPDATE:
                await self._request("PATCH", path, json=payload or {})
            else:
                await self._request("DELETE", path)
            return WriteResult.success(path.rpartition("/")[2])
        except (httpx.HTTPError, FlashliteError, PydanticValidationError) as e:
            self.logger.error(f"[http] {operation.value} {path} failed: {e}")
            return WriteResult.failure(str(e))

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)

        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        resp = await self._client.request(method, f"{self.url}/{path}", headers=headers, **kwargs)

        if resp.status_code >= 400:
            try:
                detail = resp.json().get("error") or resp.reason_phrase
            except (ValueError, AttributeError):
                detail = resp.text or resp.reason_phrase
            error_cls = ListenFailed if method == "GET" else WriteFailed
            raise error_cls(f"HTTP {resp.status_code}: {detail}")

        if not resp.content:
            return None
        return resp.json()

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
        return await self._authenticate("auth/signUp", email, password)

    async def sign_in(self, email: str, password: str) -> WriteResult:
        return await self._authenticate("auth/signIn", email, password)

    async def sign_out(self) -> WriteResult:
        self._token = None
        self._set_principal(None)
        return WriteResult.success()

    async def _authenticate(self, path: str, email: str, password: str) -> WriteResult:
        try:
            data = await self._request("POST", path, json={"email": email, "password": password})
            auth = AuthResponse.model_validate(data)
        except (httpx.HTTPError, FlashliteError, PydanticValidationError) as e:
            self.logger.error(f"[http] {path} failed: {e}")
            return WriteResult.failure(str(e))

        self._token = auth.id_token
        self._set_principal(Principal(uid=auth.uid, email=auth.email or email))
        return WriteResult.success(auth.uid)

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
        for handle in list(self._polls):
            self.cancel(handle)
        if self._client:
            await self._client.aclose()
            self._client = None
