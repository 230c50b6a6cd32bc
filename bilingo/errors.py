"""Exceptions raised inside Bilingo.

Most of these never reach the UI: the session layer catches them at the
call site, logs them and turns them into notice entries in the transcript.
"""


class BilingoError(Exception):
    """Base class for all Bilingo errors."""


class TransportError(BilingoError):
    """The peer transport failed to connect or broke mid-session."""


class ChannelClosedError(TransportError):
    """A control message was sent while the channel was not open."""


class CredentialError(BilingoError):
    """The ephemeral session credential could not be obtained."""


class ServiceError(BilingoError):
    """An auxiliary HTTP service (language detection) returned a bad response."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class ConnectionAttemptsExhausted(BilingoError):
    """Connection attempts hit the limit and the cooldown has not elapsed."""

    def __init__(self, attempts: int, retry_in_seconds: float):
        super().__init__(
            f"Too many failed connection attempts ({attempts}). "
            f"Please wait {retry_in_seconds:.0f}s or restart the session."
        )
        self.attempts = attempts
        self.retry_in_seconds = retry_in_seconds
