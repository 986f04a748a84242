"""flashlite: spaced-repetition decks kept in sync with a live document store."""

from flashlite.consts import VERSION

__version__ = VERSION
