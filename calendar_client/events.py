"""Calendar event API wrappers.

Event CRUD and contact autocomplete calls. Payloads are passed through
as plain JSON dicts; the service owns their shape. Every call goes
through the request gateway, which handles credentials and 401.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from .exceptions import ApiError, NetworkError


if TYPE_CHECKING:
    import httpx

    from .gateway import RequestGateway


EVENTS_PATH = "/calendar/events"
CONTACTS_PATH = "/calendar/contacts/autocomplete"


def _iso(value: datetime | date | str) -> str:
    """Format a date bound as an ISO string."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _json_or_raise(response: httpx.Response) -> Any:
    """Decode a successful response, raise ``ApiError`` otherwise."""
    if response.is_error:
        message = f"{response.request.method} {response.request.url.path} failed"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            message = body["message"]
        raise ApiError(message, status_code=response.status_code)

    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError as exc:
        raise NetworkError(
            f"Unexpected response body from {response.request.url.path}",
            status_code=response.status_code,
        ) from exc


class CalendarAPI:
    """Calendar event and contact calls.

    Parameters
    ----------
    gateway : RequestGateway
        Gateway every call is routed through.
    """

    def __init__(self, gateway: RequestGateway) -> None:
        """Initialize the calendar API."""
        self.gateway = gateway

    async def get_events(
        self, start: datetime | date | str, end: datetime | date | str
    ) -> dict[str, Any]:
        """List events between two bounds.

        Returns
        -------
        dict
            The service's listing, typically ``{"events", "count", "range"}``.
        """
        response = await self.gateway.get(
            EVENTS_PATH, params={"start": _iso(start), "end": _iso(end)}
        )
        return _json_or_raise(response)

    async def get_event(self, event_id: str) -> dict[str, Any]:
        """Fetch a single event."""
        return _json_or_raise(await self.gateway.get(f"{EVENTS_PATH}/{event_id}"))

    async def create_event(self, event: dict[str, Any]) -> dict[str, Any]:
        """Create an event and return it as stored by the service."""
        return _json_or_raise(await self.gateway.post(EVENTS_PATH, json=event))

    async def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to an event."""
        return _json_or_raise(await self.gateway.put(f"{EVENTS_PATH}/{event_id}", json=changes))

    async def delete_event(self, event_id: str) -> None:
        """Delete an event."""
        _json_or_raise(await self.gateway.delete(f"{EVENTS_PATH}/{event_id}"))

    async def get_contacts(self, query: str | None = None) -> list[dict[str, Any]]:
        """Autocomplete contacts, optionally filtered by ``query``."""
        response = await self.gateway.get(CONTACTS_PATH, params={"query": query})
        return _json_or_raise(response) or []
