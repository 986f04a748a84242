"""Error taxonomy for flashlite.

Validation errors are resolved before any store call. Store-surfaced errors
are turned into status strings by the context and never escape a command.
"""


class FlashliteError(Exception):
    """Base class for all flashlite errors."""


class ValidationError(FlashliteError):
    """Empty or duplicate deck name or card text."""


class NotAuthenticated(FlashliteError):
    """A store call was attempted with no signed-in principal."""

    def __init__(self, message: str = "You need to be logged in"):
        super().__init__(message)


class ListenFailed(FlashliteError):
    """A subscription reported an error."""


class WriteFailed(FlashliteError):
    """A store mutation reported an error."""


class NotFound(FlashliteError):
    """A referenced deck, card or session card does not exist."""
