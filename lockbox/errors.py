"""
Exception types raised by the LockBox vault core.
"""


class LockBoxError(Exception):
    """Base class for all LockBox errors."""


class ParseFailure(LockBoxError):
    """Stored vault data or a backup document could not be parsed."""


class VaultLockedError(LockBoxError):
    """The operation needs an unlocked vault."""


class InvalidTransitionError(LockBoxError):
    """The lifecycle event is not valid in the current state."""

    def __init__(self, event: str, status):
        super().__init__(f"Cannot {event} while vault is {status.name}")
        self.event = event
        self.status = status


class BiometricError(LockBoxError):
    """A platform credential request failed or was cancelled."""


class AIUnavailableError(LockBoxError):
    """No AI API key is configured, so AI features are disabled."""


class AIServiceError(LockBoxError):
    """The AI service call failed or returned no text."""
