#!/usr/bin/env python3
"""Error taxonomy for remote listing failures."""

from typing import Optional


class DriveError(Exception):
    """Base class for all listing failures.

    ``needs_reconfigure`` tells the operator whether to fix access settings
    (credential, sharing, folder ID) or simply retry later.
    """

    needs_reconfigure = False

    def __init__(self, message: str, status: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.reason = reason

    @property
    def hint(self) -> str:
        if self.needs_reconfigure:
            return "Check the API key and folder sharing settings, then try again."
        return "This is likely temporary. Please retry."


class NoCredentialError(DriveError):
    """Raised locally when no API key is configured."""
    needs_reconfigure = True


class UnauthorizedError(DriveError):
    """Credential invalid or blocked for the Drive API."""
    needs_reconfigure = True


class QuotaExceededError(DriveError):
    """Rate limit or daily quota exhausted."""


class AccessDeniedError(DriveError):
    """Container exists but is not shared with the credential."""
    needs_reconfigure = True


class InvalidCursorError(DriveError):
    """Continuation cursor rejected by the remote."""


class NotFoundError(DriveError):
    """Container does not exist."""
    needs_reconfigure = True


class MalformedQueryError(DriveError):
    """Query construction rejected by the remote."""


class TransportError(DriveError):
    """Network or HTTP failure below the application layer."""
