"""Authentication session state.

``Session`` is an immutable snapshot of the current authentication
status; ``SessionState`` holds exactly one of them and lets the rest of
the application read it and observe changes. Only the session
controller publishes new snapshots.
"""

from __future__ import annotations

import logging

from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Protocol

from .credential_store import CredentialRecord


logger = logging.getLogger("calendar_client.auth")

SessionListener = Callable[["Session", "str | None"], None]


class SessionStatus(str, Enum):
    """Authentication status of the session."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


@dataclass(frozen=True)
class Session:
    """The current authenticated identity.

    Attributes
    ----------
    status : SessionStatus
        Current authentication status.
    access_token : str or None
        Credential attached to outbound requests.
    refresh_token : str or None
        Credential used to mint a new access token.
    organization_id : str or None
        Resolved by the identity lookup after login.
    """

    status: SessionStatus = SessionStatus.ANONYMOUS
    access_token: str | None = None
    refresh_token: str | None = None
    organization_id: str | None = None

    def __post_init__(self) -> None:
        if self.status is SessionStatus.AUTHENTICATED and not self.access_token:
            msg = "An authenticated session requires an access token"
            raise ValueError(msg)
        if self.status is SessionStatus.ANONYMOUS and (
            self.access_token is not None or self.refresh_token is not None
        ):
            msg = "An anonymous session cannot hold tokens"
            raise ValueError(msg)

    @classmethod
    def anonymous(cls) -> Session:
        """Return the empty session."""
        return cls()

    @classmethod
    def from_record(cls, record: CredentialRecord) -> Session:
        """Rebuild a session from persisted credentials.

        Only a record holding both tokens restores an authenticated
        session; any other subset is treated as no session.
        """
        if not record.is_complete:
            return cls.anonymous()
        return cls(
            status=SessionStatus.AUTHENTICATED,
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            organization_id=record.organization_id,
        )

    def to_record(self) -> CredentialRecord:
        """Return the persisted mirror of this session."""
        return CredentialRecord(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            organization_id=self.organization_id,
        )

    def with_status(self, status: SessionStatus) -> Session:
        """Copy of this session with a different status."""
        return replace(self, status=status)

    @property
    def is_authenticated(self) -> bool:
        """True when the session is authenticated."""
        return self.status is SessionStatus.AUTHENTICATED

    @property
    def is_loading(self) -> bool:
        """True while a login or refresh is in flight."""
        return self.status in (SessionStatus.AUTHENTICATING, SessionStatus.REFRESHING)

    def __repr__(self) -> str:
        return (
            f"Session(status={self.status.value!r}, "
            f"access_token={'***' if self.access_token else None}, "
            f"refresh_token={'***' if self.refresh_token else None}, "
            f"organization_id={self.organization_id!r})"
        )


class SessionReader(Protocol):
    """Read-only view of the session, as seen by the request gateway."""

    @property
    def current(self) -> Session:
        """The current session snapshot."""


class SessionState:
    """Holder of the single current session and the last error message.

    Readers get the current immutable snapshot; ``publish`` swaps it in
    one assignment, so a reader can never pair tokens from two sessions.

    Parameters
    ----------
    session : Session, optional
        Initial snapshot (default anonymous).
    """

    def __init__(self, session: Session | None = None) -> None:
        """Initialize the session state."""
        self._session = session or Session.anonymous()
        self._last_error: str | None = None
        self._listeners: list[SessionListener] = []

    @property
    def current(self) -> Session:
        """The current session snapshot."""
        return self._session

    @property
    def status(self) -> SessionStatus:
        """Status of the current session."""
        return self._session.status

    @property
    def is_authenticated(self) -> bool:
        """True when the current session is authenticated."""
        return self._session.is_authenticated

    @property
    def last_error(self) -> str | None:
        """Last user-facing error message, if any."""
        return self._last_error

    def publish(self, session: Session) -> None:
        """Replace the current snapshot and notify listeners."""
        previous = self._session
        self._session = session
        if previous.status is not session.status:
            logger.info(
                "Session status changed: %s -> %s", previous.status.value, session.status.value
            )
        self._notify()

    def set_error(self, message: str | None) -> None:
        """Replace the last error message and notify listeners."""
        if message == self._last_error:
            return
        self._last_error = message
        self._notify()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called after every change.

        Parameters
        ----------
        listener : callable
            Called as ``listener(session, last_error)``.

        Returns
        -------
        callable
            Call it to unsubscribe.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self) -> None:
        session, error = self._session, self._last_error
        for listener in list(self._listeners):
            try:
                listener(session, error)
            except Exception:
                logger.exception("Session listener %r failed", listener)
