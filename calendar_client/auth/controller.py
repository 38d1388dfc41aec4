"""Session controller: login, logout and token refresh.

The controller is the only writer of the session state and of the
credential store. Every write pairs a state snapshot with its persisted
mirror without awaiting in between, so concurrent tasks never observe
one without the other.

State machine::

    ANONYMOUS -> AUTHENTICATING -> AUTHENTICATED
    AUTHENTICATED -> REFRESHING -> AUTHENTICATED
    AUTHENTICATING | REFRESHING --(error)--> ANONYMOUS
    AUTHENTICATED --(logout)--> ANONYMOUS
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from ..exceptions import (
    AuthenticationError,
    CalendarClientError,
    CredentialStoreError,
    InvalidCredentialsError,
    NoSessionError,
    UnauthorizedError,
)
from .session import Session, SessionStatus


if TYPE_CHECKING:
    from collections.abc import Callable

    from .api import AuthAPI, TokenPair
    from .credential_store import CredentialStore
    from .session import SessionListener, SessionState


logger = logging.getLogger("calendar_client.auth")


class SessionController:
    """Owns every transition of the authentication session.

    Parameters
    ----------
    state : SessionState
        The session state this controller writes.
    store : CredentialStore
        Durable mirror of the session credentials.
    auth_api : AuthAPI
        Remote login, refresh and identity calls.
    """

    def __init__(
        self,
        state: SessionState,
        store: CredentialStore,
        auth_api: AuthAPI,
    ) -> None:
        """Initialize the session controller."""
        self._state = state
        self._store = store
        self._auth_api = auth_api

    # -- read-through accessors ------------------------------------------

    @property
    def session(self) -> Session:
        """The current session snapshot."""
        return self._state.current

    @property
    def status(self) -> SessionStatus:
        """Status of the current session."""
        return self._state.status

    @property
    def is_authenticated(self) -> bool:
        """True when the current session is authenticated."""
        return self._state.is_authenticated

    @property
    def last_error(self) -> str | None:
        """Last user-facing error message, if any."""
        return self._state.last_error

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Observe session changes. See ``SessionState.subscribe``."""
        return self._state.subscribe(listener)

    # -- operations ------------------------------------------------------

    def initialize(self) -> Session:
        """Restore the session persisted by a previous run.

        Returns
        -------
        Session
            The restored session; anonymous unless both tokens were stored.
        """
        record = self._store.load()
        session = Session.from_record(record)
        if not record.is_empty and not record.is_complete:
            logger.info("Ignoring incomplete stored credentials")
        self._state.publish(session)
        return session

    async def login(self, email: str, password: str) -> None:
        """Authenticate with email and password.

        On success the session is AUTHENTICATED and persisted, and the
        organization id is looked up on a best-effort basis.

        Raises
        ------
        InvalidCredentialsError
            If the service rejected the credentials.
        NetworkError
            If the service could not be reached.
        """
        self._state.set_error(None)
        self._state.publish(self._state.current.with_status(SessionStatus.AUTHENTICATING))

        try:
            pair = await self._auth_api.login(email, password)
        except UnauthorizedError as exc:
            self._fail("Invalid email or password")
            raise InvalidCredentialsError("Invalid email or password", status_code=401) from exc
        except AuthenticationError as exc:
            self._fail(exc.message)
            raise
        except BaseException:
            self._fail("Login did not complete")
            raise

        self._authenticate(pair, organization_id=None)
        logger.info("Logged in as %s", email)

        await self.fetch_identity()

    async def fetch_identity(self) -> str | None:
        """Look up the organization id of the current session.

        Failure is logged and swallowed; the session stays as it is.

        Returns
        -------
        str or None
            The organization id, or None if the lookup failed.
        """
        token = self._state.current.access_token
        if token is None:
            return None

        try:
            identity = await self._auth_api.fetch_identity()
        except CalendarClientError as exc:
            logger.warning("Identity lookup failed, continuing without organization id: %s", exc)
            return None

        current = self._state.current
        if not current.is_authenticated or current.access_token != token:
            logger.debug("Session changed during identity lookup, discarding result")
            return None

        self._commit(
            Session(
                status=SessionStatus.AUTHENTICATED,
                access_token=current.access_token,
                refresh_token=current.refresh_token,
                organization_id=identity.organization_id,
            )
        )
        return identity.organization_id

    def logout(self) -> None:
        """End the session and erase stored credentials. Never raises."""
        self._teardown()
        self._state.set_error(None)

    async def refresh(self) -> None:
        """Exchange the refresh token for a new token pair.

        Any failure ends the session before the error is raised.

        Raises
        ------
        NoSessionError
            If there is no refresh token to exchange.
        InvalidCredentialsError
            If the service rejected the refresh token.
        NetworkError
            If the service could not be reached.
        """
        current = self._state.current
        if not current.refresh_token:
            self.logout()
            raise NoSessionError("No refresh token available")

        self._state.publish(current.with_status(SessionStatus.REFRESHING))

        try:
            pair = await self._auth_api.refresh(current.refresh_token)
        except UnauthorizedError as exc:
            logger.warning("Token refresh rejected: %s", exc)
            self._fail("Session expired, please log in again")
            raise InvalidCredentialsError(
                "Session expired, please log in again", status_code=401
            ) from exc
        except AuthenticationError as exc:
            logger.warning("Token refresh failed: %s", exc)
            self._fail(exc.message)
            raise
        except BaseException:
            logger.warning("Token refresh did not complete, ending session")
            self._fail("Token refresh did not complete")
            raise

        self._authenticate(pair, organization_id=current.organization_id)
        logger.info("Tokens refreshed")

    def clear_error(self) -> None:
        """Clear the last user-facing error message."""
        self._state.set_error(None)

    # -- internals -------------------------------------------------------

    def _authenticate(self, pair: TokenPair, organization_id: str | None) -> None:
        self._commit(
            Session(
                status=SessionStatus.AUTHENTICATED,
                access_token=pair.access_token,
                refresh_token=pair.refresh_token,
                organization_id=organization_id,
            )
        )

    def _commit(self, session: Session) -> None:
        """Persist then publish an authenticated session."""
        try:
            self._store.write(session.to_record())
        except CredentialStoreError:
            logger.exception("Could not persist credentials, session will not survive a restart")
        self._state.publish(session)

    def _teardown(self) -> None:
        self._state.publish(Session.anonymous())
        self._store.erase()

    def _fail(self, message: str) -> None:
        self._teardown()
        self._state.set_error(message)
