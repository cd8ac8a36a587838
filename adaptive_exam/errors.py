"""
Errors raised by the adaptive exam engine.

Everything derives from AdaptiveExamError so callers (the HTTP layer) can
catch the whole family in one place.
"""


class AdaptiveExamError(Exception):
    """Base class for engine errors."""


class InvalidConfigurationError(AdaptiveExamError, ValueError):
    """A TestConfiguration failed validation at start()."""


class InvalidAnswerError(AdaptiveExamError, ValueError):
    """The chosen option index is outside the item's options."""


class InvalidStateError(AdaptiveExamError):
    """The operation is not legal in the session's current state."""


class ExhaustedBankError(AdaptiveExamError):
    """No unasked item of any difficulty is left for the session."""


class BankUnavailableError(AdaptiveExamError):
    """The item bank could not be queried. Retrying is the gateway's job."""


class SessionNotFoundError(AdaptiveExamError, KeyError):
    """No live session is stored under the given handle."""

    def __str__(self):
        return f"Session not found: {self.args[0]}" if self.args else "Session not found"


class InvalidNavigationError(AdaptiveExamError, IndexError):
    """The requested item position has not been presented."""
