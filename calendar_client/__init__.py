"""calendar-client - asyncio client for a calendar/CRM service.

Manages the authenticated session (login, token refresh, logout and
persistence of the token pair) and routes every call to the service
through a single gateway that signs requests and ends the session on 401.
"""

from __future__ import annotations

from .auth import (
    AuthAPI,
    CredentialRecord,
    CredentialStore,
    FileCredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
    RedisCredentialStore,
    Session,
    SessionController,
    SessionState,
    SessionStatus,
    create_credential_store,
)
from .client import CalendarClient
from .config import (
    ApiSettings,
    ClientSettings,
    CredentialSettings,
    LogSettings,
    clear_settings,
    get_settings,
    reload_settings,
)
from .events import CalendarAPI
from .exceptions import (
    ApiError,
    AuthenticationError,
    AuthErrorKind,
    CalendarClientError,
    ConfigurationError,
    CredentialStoreError,
    InvalidCredentialsError,
    NetworkError,
    NoSessionError,
    UnauthorizedError,
)
from .gateway import RequestGateway, SupportsLogout


__version__ = "1.0.0"

__all__ = [
    "ApiError",
    "ApiSettings",
    "AuthAPI",
    "AuthErrorKind",
    "AuthenticationError",
    "CalendarAPI",
    "CalendarClient",
    "CalendarClientError",
    "ClientSettings",
    "ConfigurationError",
    "CredentialRecord",
    "CredentialSettings",
    "CredentialStore",
    "CredentialStoreError",
    "FileCredentialStore",
    "InvalidCredentialsError",
    "KeyringCredentialStore",
    "LogSettings",
    "MemoryCredentialStore",
    "NetworkError",
    "NoSessionError",
    "RedisCredentialStore",
    "RequestGateway",
    "Session",
    "SessionController",
    "SessionState",
    "SessionStatus",
    "SupportsLogout",
    "UnauthorizedError",
    "clear_settings",
    "create_credential_store",
    "get_settings",
    "reload_settings",
]
