"""Exception hierarchy shared by every LexIA component."""

from typing import Optional


class LexiaError(Exception):
    """Base class for all errors raised by LexIA components."""


class ConfigError(LexiaError):
    """A credential, user identity or backend setting is missing."""


class StoreError(LexiaError):
    """The message store rejected a read or write."""


class UpstreamError(LexiaError):
    """The LLM provider failed to produce a reply.

    Parameters
    ----------
    message : str
        Human readable description.
    status : int, optional
        HTTP status code when the provider answered with a non-success status.
    malformed : bool, default=False
        True when the provider answered successfully but the reply text was
        not where it should be.
    """

    def __init__(
        self, message: str, status: Optional[int] = None, malformed: bool = False
    ):
        super().__init__(message)
        self.status = status
        self.malformed = malformed


class BusyError(LexiaError):
    """A message is already being sent for this user."""


class AuthenticationError(LexiaError):
    """Sign-in or sign-up was rejected by the auth provider."""
