"""calendar-client exception hierarchy.

All calendar-client exceptions inherit from CalendarClientError, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class AuthErrorKind(str, Enum):
    """Kinds of authentication failure surfaced to callers."""

    INVALID_CREDENTIALS = "invalid_credentials"
    NO_SESSION = "no_session"
    UNAUTHORIZED = "unauthorized"
    NETWORK = "network"


class CalendarClientError(Exception):
    """Base exception for all calendar-client errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize calendar-client exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (method, url, status_code, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(CalendarClientError):
    """Configuration is invalid or incomplete."""


class CredentialStoreError(CalendarClientError):
    """Credential persistence failed.

    Raised when a credential backend cannot write the token record.
    """

    def __init__(self, message: str, backend: str | None = None, **context: Any) -> None:
        """Initialize credential store error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        backend : str, optional
            The credential backend name (e.g., "file", "keyring").
        **context : Any
            Additional context.
        """
        super().__init__(message, backend=backend, **context)
        self.backend = backend


class ApiError(CalendarClientError):
    """The remote service answered with an error status.

    Raised by the calendar API wrappers for any non-2xx response
    other than 401, which the gateway handles itself.
    """

    def __init__(self, message: str, status_code: int, **context: Any) -> None:
        """Initialize API error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        status_code : int
            The HTTP status code returned by the service.
        **context : Any
            Additional context.
        """
        super().__init__(message, status_code=status_code, **context)
        self.status_code = status_code


class AuthenticationError(CalendarClientError):
    """Base exception for all authentication failures."""

    kind: AuthErrorKind


class InvalidCredentialsError(AuthenticationError):
    """The remote service rejected a login or refresh request."""

    kind = AuthErrorKind.INVALID_CREDENTIALS


class NoSessionError(AuthenticationError):
    """Refresh was attempted without a stored refresh token."""

    kind = AuthErrorKind.NO_SESSION


class UnauthorizedError(AuthenticationError):
    """A request was rejected with 401 after dispatch.

    By the time this is raised the session has already been
    torn down by the gateway.
    """

    kind = AuthErrorKind.UNAUTHORIZED

    def __init__(
        self,
        message: str,
        method: str | None = None,
        url: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize unauthorized error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        method : str, optional
            HTTP method of the rejected request.
        url : str, optional
            URL of the rejected request.
        **context : Any
            Additional context.
        """
        super().__init__(message, method=method, url=url, **context)
        self.method = method
        self.url = url


class NetworkError(AuthenticationError):
    """Transport failure, or a response that could not be interpreted."""

    kind = AuthErrorKind.NETWORK
