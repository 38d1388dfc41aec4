"""Authentication session management for calendar-client.

Provides the credential store backends, the session state holder, the
session controller and the remote authentication endpoints.
"""

from __future__ import annotations

from .api import AuthAPI, Identity, TokenPair
from .controller import SessionController
from .credential_store import (
    CredentialRecord,
    CredentialStore,
    FileCredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
    RedisCredentialStore,
    create_credential_store,
)
from .session import Session, SessionReader, SessionState, SessionStatus


__all__ = [
    "AuthAPI",
    "CredentialRecord",
    "CredentialStore",
    "FileCredentialStore",
    "Identity",
    "KeyringCredentialStore",
    "MemoryCredentialStore",
    "RedisCredentialStore",
    "Session",
    "SessionController",
    "SessionReader",
    "SessionState",
    "SessionStatus",
    "TokenPair",
    "create_credential_store",
]
