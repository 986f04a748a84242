"""flashlite CLI: deck and card management plus interactive review."""

import asyncio
import json
import logging
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

import typer

from flashlite.application.config import AppConfig, resolve_config
from flashlite.application.context import FlashcardsContext
from flashlite.application.review_session import SessionPhase
from flashlite.domain.constants import LOAD_POLL_ATTEMPTS, LOAD_POLL_INTERVAL
from flashlite.domain.models import Deck, Rating

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="flashlite: spaced-repetition flashcards from the terminal.",
    no_args_is_help=True,
)

decks_app = typer.Typer(help="Create, rename and delete decks.", no_args_is_help=True)
app.add_typer(decks_app, name="decks")

cards_app = typer.Typer(help="Manage the cards of a deck.", no_args_is_help=True)
app.add_typer(cards_app, name="cards")

config_app = typer.Typer(help="Manage flashlite configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

_LEVELS = {0: logging.ERROR, 1: logging.WARNING, 2: logging.INFO}

RATING_WORDS = {r.name.lower(): r for r in Rating}


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    backend: Annotated[str | None, typer.Option(help="Store backend: local, http.")] = None,
    data_file: Annotated[
        Path | None, typer.Option(help="JSON file used by the local backend.")
    ] = None,
    store_url: Annotated[str | None, typer.Option(help="Document service URL.")] = None,
):
    """Global settings for flashlite."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "backend": backend,
        "data_file": data_file,
        "store_url": store_url,
        "verbose": verbose,
    }
    logging.getLogger().setLevel(_LEVELS.get(verbose, logging.DEBUG))


def _config(ctx: typer.Context) -> AppConfig:
    overrides = (ctx.obj or {}).get("overrides", {})
    return resolve_config(overrides)


def attach_log_file(log_dir: Path) -> None:
    """Mirror emitted records into log_dir/flashlite.log, once per process."""
    root = logging.getLogger()
    target = log_dir / "flashlite.log"
    if any(getattr(h, "baseFilename", None) == str(target) for h in root.handlers):
        return
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(target, encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))
    root.addHandler(handler)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def wait_until(predicate: Callable[[], bool]) -> bool:
    """Yield to the event loop until ``predicate`` holds or the attempts run out."""
    for _ in range(LOAD_POLL_ATTEMPTS):
        if predicate():
            return True
        await asyncio.sleep(LOAD_POLL_INTERVAL)
    return predicate()


@asynccontextmanager
async def open_context(config: AppConfig):
    """Build a context, sign in if configured, and wait for the deck list."""
    from flashlite.application.factory import build_context

    attach_log_file(config.log_dir)
    context, backend = build_context(config)
    context.init()
    try:
        if config.email and config.password:
            if not await context.sign_in(config.email, config.password):
                typer.secho(context.status, fg="red", err=True)

        loaded = await wait_until(
            lambda: backend.current_principal() is None
            or (context.is_logged_in and not context.is_loading_decks)
        )
        if not loaded:
            logger.warning("Timed out waiting for decks")
        if context.error:
            typer.secho(context.error, fg="red", err=True)

        yield context
        await context.drain()
    finally:
        context.dispose()
        await backend.close()


async def load_cards(context: FlashcardsContext, deck_id: str) -> None:
    context.start_cards(deck_id)
    if not await wait_until(lambda: not context.is_loading_cards):
        logger.warning(f"Timed out waiting for cards of deck {deck_id}")
    if context.error:
        typer.secho(context.error, fg="red", err=True)


def find_deck(context: FlashcardsContext, ref: str) -> Deck:
    """Match a deck by id, then by case-insensitive name."""
    for deck in context.decks:
        if deck.id == ref:
            return deck
    for deck in context.decks:
        if deck.name.casefold() == ref.strip().casefold():
            return deck
    if not context.is_logged_in:
        typer.secho("You need to be logged in", fg="red")
    else:
        typer.secho(f"No deck matches '{ref}'.", fg="red")
    raise typer.Exit(1)


def report(context: FlashcardsContext, ok: bool) -> None:
    typer.secho(context.status, fg="green" if ok else "red")
    if not ok:
        raise typer.Exit(1)


def parse_rating(text: str) -> Rating | None:
    text = text.strip().lower()
    if text in RATING_WORDS:
        return RATING_WORDS[text]
    if text.isdigit() and int(text) in {r.value for r in Rating}:
        return Rating(int(text))
    return None


# ---------------------------------------------------------------------------
# Decks
# ---------------------------------------------------------------------------


@decks_app.command("list")
def decks_list(ctx: typer.Context):
    """List your decks, oldest first."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            if not context.decks:
                typer.secho("No decks yet.", fg="yellow")
                return
            for deck in context.decks:
                typer.echo(f"{deck.id}\t{deck.name}")

    asyncio.run(run())


@decks_app.command("add")
def decks_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Name of the new deck.")],
):
    """Create a deck."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            report(context, await context.add_deck(name))

    asyncio.run(run())


@decks_app.command("rename")
def decks_rename(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
    name: Annotated[str, typer.Argument(help="New name.")],
):
    """Rename a deck."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            report(context, await context.rename_deck(target.id, name))

    asyncio.run(run())


@decks_app.command("delete")
def decks_delete(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Skip the confirmation prompt.")
    ] = False,
):
    """Delete a deck together with all of its cards."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            if not force and not typer.confirm(
                f"Delete '{target.name}' and all of its cards?", default=False
            ):
                raise typer.Abort()
            report(context, await context.delete_deck(target.id))

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


@cards_app.command("list")
def cards_list(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
):
    """List the cards of a deck with their schedule."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            await load_cards(context, target.id)
            if not context.cards:
                typer.secho(f"'{target.name}' has no cards.", fg="yellow")
                return
            for sc in context.cards:
                card = sc.card
                typer.echo(
                    f"{sc.key}\t{card.front}\t{card.back}\t"
                    f"due {card.due_date or '-'} (every {card.interval_days}d)"
                )

    asyncio.run(run())


@cards_app.command("add")
def cards_add(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
    front: Annotated[str, typer.Argument(help="Question side.")],
    back: Annotated[str, typer.Argument(help="Answer side.")],
):
    """Add a card to a deck. It is due today."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            await load_cards(context, target.id)
            report(context, await context.add_card(target.id, front, back))

    asyncio.run(run())


@cards_app.command("edit")
def cards_edit(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
    card_id: Annotated[str, typer.Argument(help="Card id, as shown by 'cards list'.")],
    front: Annotated[str | None, typer.Option(help="New question side.")] = None,
    back: Annotated[str | None, typer.Option(help="New answer side.")] = None,
):
    """Edit the text of a card; its schedule is kept."""
    import dataclasses

    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            await load_cards(context, target.id)
            current = next((sc.card for sc in context.cards if sc.key == card_id), None)
            if current is None:
                typer.secho("Could not find card to edit (please, refresh and try again)", fg="red")
                raise typer.Exit(1)
            edited = dataclasses.replace(
                current,
                front=current.front if front is None else front,
                back=current.back if back is None else back,
            )
            report(context, await context.update_card(card_id, edited))

    asyncio.run(run())


@cards_app.command("delete")
def cards_delete(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id, as shown by 'cards list'.")],
):
    """Delete a single card."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            report(context, await context.delete_card(card_id))

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def _print_summary(context: FlashcardsContext) -> None:
    session = context.session
    if session is None:
        return
    done, total = session.progress
    typer.secho(f"Reviewed {done}/{total}", bold=True)
    for rating, count in session.counters.items():
        typer.echo(f"  {rating.name.title()}: {count}")


@app.command()
def review(
    ctx: typer.Context,
    deck: Annotated[str, typer.Argument(help="Deck id or name.")],
):
    """Review the cards of a deck that are due today."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            target = find_deck(context, deck)
            context.enter_review(target.id)
            await wait_until(
                lambda: context.session is None
                or context.session.phase is not SessionPhase.UNINITIALIZED
            )
            if context.error:
                typer.secho(context.error, fg="red")
                raise typer.Exit(1)

            try:
                while True:
                    session = context.session
                    if session is None:
                        break
                    if session.phase is SessionPhase.EXHAUSTED:
                        if session.progress[1] == 0:
                            typer.secho("No cards are due.", fg="yellow")
                        else:
                            typer.secho("Session complete!", fg="green")
                            _print_summary(context)
                        if typer.confirm("Restart the session?", default=False):
                            context.restart_session()
                            continue
                        break
                    if session.phase is SessionPhase.UNINITIALIZED:
                        typer.secho("Cards did not load in time.", fg="red")
                        break

                    head = session.head
                    done, total = session.progress
                    typer.echo(f"\n[{done + 1}/{total}] {head.card.front}")
                    answer = typer.prompt("Enter to reveal, q to quit", default="", show_default=False)
                    if answer.strip().lower() == "q":
                        break
                    typer.secho(head.card.back, fg="cyan")

                    while True:
                        choice = typer.prompt("Rate 0-3 (again/hard/good/easy), r restart, q quit")
                        choice = choice.strip().lower()
                        if choice in {"q", "r"}:
                            break
                        rating = parse_rating(choice)
                        if rating is not None:
                            break
                        typer.secho("Unknown rating.", fg="yellow")

                    if choice == "q":
                        break
                    if choice == "r":
                        context.restart_session()
                        continue

                    context.rate(head.key, rating)
                    typer.echo(context.session.last_result)
            finally:
                session = context.session
                if session is not None and session.phase is SessionPhase.ACTIVE and session.progress[0]:
                    _print_summary(context)
                context.exit_review()

    asyncio.run(run())


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


@app.command()
def signup(
    ctx: typer.Context,
    email: Annotated[str, typer.Option(prompt=True, help="Account email.")],
    password: Annotated[
        str, typer.Option(prompt=True, hide_input=True, confirmation_prompt=True)
    ],
):
    """Create an account on the configured backend."""
    config = _config(ctx)

    async def run():
        async with open_context(config) as context:
            report(context, await context.sign_up(email, password))

    asyncio.run(run())


@app.command()
def logs(ctx: typer.Context):
    """Print the path of the log file."""
    config = _config(ctx)
    typer.echo(str(config.log_dir / "flashlite.log"))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("password"):
        d["password"] = "********"
    typer.echo(json.dumps(d, indent=2))
