"""Errors raised while syncing.

Everything except NotFoundError aborts the run.
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync failures."""


class InvalidCredentialError(SyncError):
    """The Readwise access token was rejected (or could not be checked)."""


class AuthorizationError(SyncError):
    """Ulysses did not grant an access token."""


class TransportError(SyncError):
    """A request to the Readwise API failed at the network or HTTP level."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(SyncError):
    """A Readwise or Ulysses payload could not be decoded."""


class SinkCommandError(SyncError):
    """A Ulysses command failed."""


class NotFoundError(SinkCommandError):
    """Ulysses has no item at the requested locator."""

    def __init__(self, locator: str, cause: Optional[Exception] = None):
        super().__init__(f"Ulysses item not found: {locator}")
        self.locator = locator
        self.cause = cause
