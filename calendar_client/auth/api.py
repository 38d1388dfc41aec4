"""Remote authentication endpoints.

Thin wrappers over the login, token refresh and identity calls. They
go through the request gateway like every other call and translate
error statuses into authentication errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import ApiError, InvalidCredentialsError, NetworkError


if TYPE_CHECKING:
    from ..gateway import RequestGateway


class TokenPair(BaseModel):
    """Access/refresh token pair returned by login and refresh."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    access_token: str = Field(
        min_length=1,
        validation_alias=AliasChoices("accessToken", "token", "access_token"),
    )
    refresh_token: str = Field(
        min_length=1,
        validation_alias=AliasChoices("refreshToken", "refresh_token"),
    )


class Identity(BaseModel):
    """Identity record of the logged-in user."""

    model_config = ConfigDict(extra="allow", frozen=True)

    organization_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("organizationId", "organization_id"),
    )


def _error_message(response: httpx.Response, fallback: str) -> str:
    """Extract the server's ``message`` field, if the body has one."""
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
        return body["message"]
    return fallback


def _parse(model: type[BaseModel], response: httpx.Response) -> Any:
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise NetworkError(
            f"Unexpected response body from {response.request.url.path}",
            status_code=response.status_code,
        ) from exc


class AuthAPI:
    """Login, refresh and identity calls.

    Parameters
    ----------
    gateway : RequestGateway
        Gateway every call is routed through.
    login_path : str
        Path of the login endpoint.
    refresh_path : str
        Path of the token refresh endpoint.
    identity_path : str
        Path of the identity endpoint.
    """

    def __init__(
        self,
        gateway: RequestGateway,
        login_path: str = "/login",
        refresh_path: str = "/auth/refresh",
        identity_path: str = "/identity",
    ) -> None:
        """Initialize the auth API."""
        self.gateway = gateway
        self.login_path = login_path
        self.refresh_path = refresh_path
        self.identity_path = identity_path

    async def login(self, email: str, password: str) -> TokenPair:
        """Exchange credentials for a token pair.

        Raises
        ------
        InvalidCredentialsError
            If the service rejects the credentials.
        NetworkError
            If the service cannot be reached or answers nonsense.
        """
        response = await self.gateway.post(
            self.login_path, json={"email": email, "password": password}
        )
        if response.is_error:
            raise InvalidCredentialsError(
                _error_message(response, "Login failed"),
                status_code=response.status_code,
            )
        return _parse(TokenPair, response)

    async def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new token pair."""
        response = await self.gateway.post(
            self.refresh_path, json={"refreshToken": refresh_token}
        )
        if response.is_error:
            raise InvalidCredentialsError(
                _error_message(response, "Token refresh failed"),
                status_code=response.status_code,
            )
        return _parse(TokenPair, response)

    async def fetch_identity(self) -> Identity:
        """Fetch the identity record of the current session."""
        response = await self.gateway.get(self.identity_path)
        if response.is_error:
            raise ApiError(
                _error_message(response, "Identity lookup failed"),
                status_code=response.status_code,
            )
        return _parse(Identity, response)
