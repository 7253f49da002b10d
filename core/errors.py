"""
core/errors.py -- Error kinds raised by the Nexus client.

Every failure the gateway reports is one of these types so callers can branch
on the kind without inspecting messages. None of them is fatal to the process;
AuthInvalidError is the only one with a mandated side effect (the session is
logged out before it is raised).

Layer rule: core/ is the kernel. No imports from auth/, gateway/, or storage/.
"""

from __future__ import annotations


class NexusError(Exception):
    """Base class for all client errors."""


class AuthInvalidError(NexusError):
    """The API rejected the credential (HTTP 401 or 403)."""

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"Authentication failed ({status_code}).")


class ApiError(NexusError):
    """The request reached the server and was rejected for a non-auth reason."""

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        self.message = message
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class NetworkError(NexusError):
    """The request never completed (DNS, refused connection, timeout)."""


class StorageError(NexusError):
    """Durable client storage could not be read or written."""


class IdentityResolutionError(NexusError):
    """The identity endpoint did not accept the credential."""


class LoginError(NexusError):
    """The login endpoint rejected the username/password pair."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
