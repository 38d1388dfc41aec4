"""Request gateway: the single chokepoint for calls to the remote service.

Every outbound request is signed with the current access token by an
httpx request hook. A response hook reacts to 401 by asking the session
owner to log out, then raises ``UnauthorizedError``. The request is
never retried. Every other status is handed back to the caller as is.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING, Any, Protocol

import httpx

from .exceptions import NetworkError, UnauthorizedError
from .log import redact_sensitive_data


if TYPE_CHECKING:
    from types import TracebackType

    from .auth.session import SessionReader


logger = logging.getLogger("calendar_client.gateway")


class SupportsLogout(Protocol):
    """The one capability the gateway needs from the session controller."""

    def logout(self) -> None:
        """Tear the session down. Must be idempotent and never raise."""


class RequestGateway:
    """Signs outbound requests and tears the session down on 401.

    Parameters
    ----------
    state : SessionReader
        Source of the current session snapshot.
    base_url : str
        Base URL request paths are resolved against.
    on_unauthorized : SupportsLogout, optional
        Invoked before a 401 is propagated to the caller.
    timeout : float
        Transport timeout in seconds (default ``30.0``).
    headers : dict[str, str], optional
        Default headers sent with every request.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        state: SessionReader,
        *,
        base_url: str,
        on_unauthorized: SupportsLogout | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the gateway."""
        self.state = state
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", **(headers or {})},
            transport=transport,
            event_hooks={
                "request": [self._sign_request],
                "response": [self._check_response],
            },
        )

    @property
    def base_url(self) -> str:
        """Base URL of the remote service."""
        return str(self._client.base_url)

    @property
    def is_closed(self) -> bool:
        """True once the underlying HTTP client is closed."""
        return self._client.is_closed

    async def _sign_request(self, request: httpx.Request) -> None:
        """Attach the current access token, if any."""
        token = self.state.current.access_token
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        else:
            request.headers.pop("Authorization", None)

    async def _check_response(self, response: httpx.Response) -> None:
        """Tear the session down on 401, before the caller sees the failure."""
        if response.status_code != httpx.codes.UNAUTHORIZED:
            return

        request = response.request
        logger.warning(
            "%s %s rejected with 401, ending session", request.method, request.url.path
        )
        if self.on_unauthorized is not None:
            self.on_unauthorized.logout()
        raise UnauthorizedError(
            "Request was rejected as unauthorized",
            method=request.method,
            url=str(request.url),
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send one request to the remote service.

        Parameters
        ----------
        method : str
            HTTP method.
        path : str
            Path relative to the base URL.
        params : dict, optional
            Query parameters; None values are dropped.
        json : Any, optional
            JSON body.

        Returns
        -------
        httpx.Response
            The response, whatever its status (other than 401).

        Raises
        ------
        UnauthorizedError
            If the service answered 401. The session is already torn down.
        NetworkError
            If no usable response was received (transport failure,
            undecodable body or too many redirects).
        """
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        if json is not None:
            logger.debug("%s %s body=%s", method, path, redact_sensitive_data(json))
        else:
            logger.debug("%s %s", method, path)

        try:
            response = await self._client.request(method, path, params=params or None, json=json)
        except httpx.RequestError as exc:
            raise NetworkError(
                f"Request failed: {exc}",
                method=method,
                path=path,
            ) from exc

        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> httpx.Response:
        """Send a GET request."""
        return await self.request("GET", path, params=params)

    async def post(self, path: str, *, json: Any = None) -> httpx.Response:
        """Send a POST request."""
        return await self.request("POST", path, json=json)

    async def put(self, path: str, *, json: Any = None) -> httpx.Response:
        """Send a PUT request."""
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> httpx.Response:
        """Send a DELETE request."""
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        if not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> RequestGateway:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()
