"""
Flashcards context: application layer orchestrator.

One explicit object holds the cached decks and cards, the subscriptions that
feed them, the auth gate and the current review session. The UI or CLI builds
it once, calls ``init()`` and ``dispose()`` at its lifecycle boundaries, reads
the exposed fields and issues commands.

Store failures never raise out of a command: they land in ``status`` (user
actions) or ``error`` (listener failures), and the cached collections keep
their last known good contents.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from flashlite.application.review_session import ReviewSession, SessionPhase
from flashlite.application.subscriptions import AuthGate, SubscriptionManager
from flashlite.application.validation import validate_card_text, validate_deck_name
from flashlite.domain.constants import DECK_ORDER_FIELD
from flashlite.domain.errors import FlashliteError, NotAuthenticated, NotFound
from flashlite.domain.models import (
    Card,
    Deck,
    Document,
    Operation,
    Principal,
    Rating,
    SessionCard,
)
from flashlite.domain.ports import (
    AuthProvider,
    CollectionQuery,
    Scope,
    ScopeKind,
    Store,
    cards_path,
    decks_path,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionView:
    """Read-only picture of the review session for rendering."""

    deck_id: str
    phase: SessionPhase
    head: SessionCard | None
    progress: tuple[int, int]
    counters: dict[Rating, int]
    last_result: str


class FlashcardsContext:
    """
    Application service behind every screen or command.

    Follows Dependency Inversion: depends on the Store and AuthProvider
    ports, not on a concrete backend.
    """

    def __init__(
        self,
        store: Store,
        auth: AuthProvider,
        today: Callable[[], date] = date.today,
    ):
        """
        Args:
            store: The document store (port).
            auth: The account provider (port).
            today: Clock for due dates; injectable for tests.
        """
        self._store = store
        self._auth = auth
        self._today = today
        self.subscriptions = SubscriptionManager(store, auth)
        self._gate = AuthGate(self.subscriptions, self._on_logged_in, self._on_logged_out)

        self._decks: list[Deck] = []
        self._cards: list[SessionCard] = []
        self._active_deck_id: str | None = None
        self._session: ReviewSession | None = None

        self._status = ""
        self._error = ""
        self._loading_decks = False
        self._loading_cards = False
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read-only fields
    # ------------------------------------------------------------------

    @property
    def decks(self) -> tuple[Deck, ...]:
        return tuple(self._decks)

    @property
    def cards(self) -> tuple[SessionCard, ...]:
        return tuple(self._cards)

    @property
    def active_deck_id(self) -> str | None:
        return self._active_deck_id

    @property
    def session(self) -> SessionView | None:
        s = self._session
        if s is None:
            return None
        return SessionView(
            deck_id=s.deck_id,
            phase=s.phase,
            head=s.head,
            progress=s.progress,
            counters=dict(s.counters),
            last_result=s.last_result,
        )

    @property
    def status(self) -> str:
        return self._status

    @property
    def error(self) -> str:
        return self._error

    @property
    def is_loading_decks(self) -> bool:
        return self._loading_decks

    @property
    def is_loading_cards(self) -> bool:
        return self._loading_cards

    @property
    def is_logged_in(self) -> bool:
        return self._gate.is_logged_in

    @property
    def current_email(self) -> str | None:
        principal = self._gate.principal
        return principal.email if principal else None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Start listening to auth state. Signing in starts the deck subscription."""
        self._gate.start()

    def dispose(self) -> None:
        """Release every subscription, auth listener included."""
        self.subscriptions.stop_all()
        self._session = None
        self._loading_decks = False
        self._loading_cards = False

    async def drain(self) -> None:
        """Wait for outstanding fire-and-forget writes."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def start_decks(self) -> None:
        try:
            uid = self._require_uid()
        except NotAuthenticated as e:
            self._error = str(e)
            return

        self._loading_decks = True
        self._error = ""
        self.subscriptions.start(
            Scope.decks(),
            CollectionQuery(decks_path(uid), order_by=DECK_ORDER_FIELD),
            self._on_decks,
            self._on_decks_error,
        )

    def stop_decks(self) -> None:
        self.subscriptions.stop(ScopeKind.DECKS_FOR_USER)
        self._loading_decks = False

    def start_cards(self, deck_id: str) -> None:
        try:
            uid = self._require_uid()
        except NotAuthenticated as e:
            self._error = str(e)
            return

        self.subscriptions.stop(ScopeKind.CARDS_FOR_DECK)
        # Cleared before the new subscription exists so deck A's cards never show under deck B.
        self._cards = []
        self._active_deck_id = deck_id
        if self._session is not None and self._session.deck_id != deck_id:
            self._session = None

        self._loading_cards = True
        self._error = ""
        self.subscriptions.start(
            Scope.cards(deck_id),
            CollectionQuery(cards_path(uid), where={"deckId": deck_id}),
            self._on_cards,
            self._on_cards_error,
        )

    def stop_cards(self) -> None:
        self.subscriptions.stop(ScopeKind.CARDS_FOR_DECK)
        self._loading_cards = False

    def _on_decks(self, docs: list[Document]) -> None:
        self._decks = [Deck.from_document(d) for d in docs]
        self._loading_decks = False
        logger.debug(f"[decks] received {len(self._decks)}")

    def _on_decks_error(self, message: str) -> None:
        self._error = f"Listen failed: {message}"
        self._loading_decks = False
        logger.warning(f"[decks] {self._error}")

    def _on_cards(self, docs: list[Document]) -> None:
        self._cards = [SessionCard(key=d.id, card=Card.from_document(d)) for d in docs]
        self._loading_cards = False
        logger.debug(f"[cards] deck={self._active_deck_id} received {len(self._cards)}")

        session = self._session
        if (
            session is not None
            and session.phase is SessionPhase.UNINITIALIZED
            and session.deck_id == self._active_deck_id
        ):
            session.build(self._cards)

    def _on_cards_error(self, message: str) -> None:
        self._error = f"Listen failed: {message}"
        self._loading_cards = False
        logger.warning(f"[cards] {self._error}")

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _on_logged_in(self, principal: Principal) -> None:
        self.start_decks()

    def _on_logged_out(self) -> None:
        self._clear_cached_state()

    def _clear_cached_state(self) -> None:
        self._decks = []
        self._cards = []
        self._active_deck_id = None
        self._session = None
        self._loading_decks = False
        self._loading_cards = False

    async def sign_up(self, email: str, password: str) -> bool:
        result = await self._auth.sign_up(email, password)
        self._status = "Signed up!" if result.ok else f"Sign Up Failed: {result.error}"
        return result.ok

    async def sign_in(self, email: str, password: str) -> bool:
        result = await self._auth.sign_in(email, password)
        self._status = "Signed in!" if result.ok else f"Sign In failed: {result.error}"
        return result.ok

    async def sign_out(self) -> bool:
        # Stop syncing right away; the auth listener will confirm the transition later.
        self.subscriptions.stop_collections()
        self._clear_cached_state()
        self._error = ""

        result = await self._auth.sign_out()
        self._status = "Signed Out!" if result.ok else f"Sign Out failed: {result.error}"
        return result.ok

    # ------------------------------------------------------------------
    # Deck commands
    # ------------------------------------------------------------------

    async def add_deck(self, name: str) -> bool:
        try:
            uid = self._require_uid()
            name = validate_deck_name(name, self._decks)
        except FlashliteError as e:
            self._status = str(e)
            return False

        result = await self._store.mutate(decks_path(uid), Operation.INSERT, {"name": name})
        self._status = "Deck added!" if result.ok else f"Add failed: {result.error}"
        return result.ok

    async def rename_deck(self, deck_id: str, name: str) -> bool:
        try:
            uid = self._require_uid()
            if not any(d.id == deck_id for d in self._decks):
                raise NotFound("Could not find deck to rename")
            name = validate_deck_name(name, self._decks, editing_id=deck_id)
        except FlashliteError as e:
            self._status = str(e)
            return False

        result = await self._store.mutate(
            f"{decks_path(uid)}/{deck_id}", Operation.UPDATE, {"name": name}
        )
        self._status = "Deck updated!" if result.ok else f"Update failed: {result.error}"
        return result.ok

    async def delete_deck(self, deck_id: str) -> bool:
        """Delete the deck's cards first, then the deck itself."""
        try:
            uid = self._require_uid()
        except NotAuthenticated as e:
            self._status = str(e)
            return False

        try:
            docs = await self._store.fetch_collection(
                CollectionQuery(cards_path(uid), where={"deckId": deck_id})
            )
        except Exception as e:
            logger.error(f"[decks] loading cards of {deck_id} failed: {e}")
            self._status = f"Load cards failed: {e}"
            return False

        for doc in docs:
            result = await self._store.mutate(f"{cards_path(uid)}/{doc.id}", Operation.DELETE)
            if not result.ok:
                self._status = f"Card delete failed: {result.error}"
                return False

        result = await self._store.mutate(f"{decks_path(uid)}/{deck_id}", Operation.DELETE)
        if not result.ok:
            self._status = f"Deck Delete failed: {result.error}"
            return False

        if self._session is not None and self._session.deck_id == deck_id:
            self._session = None
        self._status = "Deck and cards Deleted!"
        return True

    # ------------------------------------------------------------------
    # Card commands
    # ------------------------------------------------------------------

    async def add_card(self, deck_id: str, front: str, back: str) -> bool:
        siblings = self._cards if deck_id == self._active_deck_id else []
        try:
            uid = self._require_uid()
            front, back = validate_card_text(front, back, siblings)
        except FlashliteError as e:
            self._status = str(e)
            return False

        card = Card(
            id="",
            deck_id=deck_id,
            front=front,
            back=back,
            interval_days=1,
            due_date=self._today().isoformat(),
        )
        result = await self._store.mutate(cards_path(uid), Operation.INSERT, card.to_payload())
        self._status = "Card added!" if result.ok else f"Add failed: {result.error}"
        return result.ok

    async def update_card(self, card_id: str, card: Card) -> bool:
        """Save edited card text; the card must be in the cached list."""
        try:
            self._require_uid()
            if not any(sc.key == card_id for sc in self._cards):
                raise NotFound("Could not find card to edit (please, refresh and try again)")
            front, back = validate_card_text(card.front, card.back, self._cards, editing_id=card_id)
        except FlashliteError as e:
            self._status = str(e)
            return False

        return await self._write_card(card_id, dataclasses.replace(card, front=front, back=back))

    async def delete_card(self, card_id: str) -> bool:
        try:
            uid = self._require_uid()
        except NotAuthenticated as e:
            self._status = str(e)
            return False

        result = await self._store.mutate(f"{cards_path(uid)}/{card_id}", Operation.DELETE)
        self._status = "Card Deleted!" if result.ok else f"Delete failed: {result.error}"
        return result.ok

    async def _write_card(self, card_id: str, card: Card) -> bool:
        try:
            uid = self._require_uid()
        except NotAuthenticated as e:
            self._status = str(e)
            return False

        payload = card.to_payload()
        payload.pop("deckId")
        result = await self._store.mutate(f"{cards_path(uid)}/{card_id}", Operation.UPDATE, payload)
        self._status = "Card updated!" if result.ok else f"Update Failed: {result.error}"
        if not result.ok:
            logger.warning(f"[cards] update of {card_id} failed: {result.error}")
        return result.ok

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    def enter_review(self, deck_id: str) -> SessionView:
        """
        Open a review session for ``deck_id``.

        The snapshot is taken now if the deck's cards have arrived, otherwise
        on their first delivery.
        """
        if self._active_deck_id != deck_id or not self.subscriptions.is_active(
            ScopeKind.CARDS_FOR_DECK
        ):
            self.start_cards(deck_id)

        self._session = ReviewSession(deck_id, self._schedule_write, today=self._today)
        if not self._loading_cards and self._active_deck_id == deck_id:
            self._session.build(self._cards)
        return self.session

    def exit_review(self) -> None:
        self._session = None

    def rate(self, key: str, rating: int | Rating) -> Card | None:
        """Rate a queued card; the write runs in the background."""
        if self._session is None:
            self._status = "No review session in progress"
            return None
        try:
            return self._session.rate(key, rating)
        except NotFound as e:
            self._status = str(e)
            return None

    def restart_session(self) -> SessionView | None:
        """Rebuild the session queue from the live cards and reset its counters."""
        if self._session is None:
            self._status = "No review session in progress"
            return None
        self._session.restart(self._cards)
        return self.session

    def _schedule_write(self, key: str, card: Card) -> None:
        # Optimistic: the cached list shows the new schedule before the store echoes it.
        self._cards = [SessionCard(key, card) if sc.key == key else sc for sc in self._cards]
        task = asyncio.get_running_loop().create_task(self._write_card(key, card))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    # ------------------------------------------------------------------

    def _require_uid(self) -> str:
        principal = self._auth.current_principal()
        if principal is None:
            raise NotAuthenticated()
        return principal.uid
