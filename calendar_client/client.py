"""Client facade wiring one session, gateway and API surface together."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .auth.api import AuthAPI
from .auth.controller import SessionController
from .auth.credential_store import CredentialStore, create_credential_store
from .auth.session import SessionState
from .config import ClientSettings, get_settings
from .events import CalendarAPI
from .exceptions import ConfigurationError
from .gateway import RequestGateway


if TYPE_CHECKING:
    from types import TracebackType

    import httpx


class CalendarClient:
    """Calendar service client with a managed authentication session.

    Builds one ``SessionState``, the credential store, the request
    gateway, the session controller and the calendar API, and restores
    any session persisted by a previous run.

    Parameters
    ----------
    settings : ClientSettings, optional
        Configuration; defaults to ``get_settings()``.
    store : CredentialStore, optional
        Credential store overriding the configured backend.
    transport : httpx.AsyncBaseTransport, optional
        Custom HTTP transport (e.g. ``httpx.MockTransport`` in tests).

    Examples
    --------
    >>> async with CalendarClient() as client:  # doctest: +SKIP
    ...     await client.session.login("a@b.com", "pw")
    ...     events = await client.calendar.get_events("2024-01-01", "2024-01-31")
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        store: CredentialStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client."""
        self.settings = settings or get_settings()
        api = self.settings.api
        if not api.base_url:
            raise ConfigurationError("No API base URL configured", setting="api.base_url")

        self.state = SessionState()
        if store is None:
            store = create_credential_store(self.settings.credentials)
        self.store = store
        self.gateway = RequestGateway(
            self.state,
            base_url=api.base_url,
            timeout=api.timeout,
            headers={"Accept-Language": api.accept_language, "User-Agent": api.user_agent},
            transport=transport,
        )
        self.session = SessionController(
            self.state,
            self.store,
            AuthAPI(
                self.gateway,
                login_path=api.login_path,
                refresh_path=api.refresh_path,
                identity_path=api.identity_path,
            ),
        )
        self.gateway.on_unauthorized = self.session
        self.calendar = CalendarAPI(self.gateway)

        self.session.initialize()

    async def aclose(self) -> None:
        """Close the HTTP client. The session itself is kept."""
        await self.gateway.aclose()

    async def __aenter__(self) -> CalendarClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
