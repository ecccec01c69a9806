"""
Async client for the location-tracking backend REST API.

One coroutine per backend capability. Each makes a single attempt under a
fixed timeout and either returns decoded records or raises a
``RequestError`` whose message prefers the server's own error text.
No call touches viewer state; callers decide what to do with results.
"""
import asyncio
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx
from django.conf import settings

from .exceptions import (RequestError, RequestTimeout, ServerError,
                         TransportError, ValidationError)
from .records import (ClearResult, DatabaseInfo, Location, Machine, Stats,
                      decode_many)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# Tokens the backend itself requires in delete request bodies
CLEAR_ALL_TOKEN = 'DELETE_ALL_DATA'
CLEAR_MACHINE_TOKEN = 'DELETE_MACHINE_DATA'


def clean_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Drop query parameters whose value is None or an empty string."""
    return {
        key: value for key, value in params.items()
        if value is not None and value != ''
    }


def machine_scope(machine_name: str) -> str:
    """Return the location-list scope for one machine, name percent-encoded."""
    return f"/machine/{quote(machine_name, safe='')}"


def _server_message(body: Any) -> str | None:
    """Extract a human-readable message from an error response body."""
    if isinstance(body, Mapping):
        for key in ('message', 'error', 'detail'):
            value = body.get(key)
            if value:
                return str(value)
    return None


class TrackerApiClient:
    """
    Client for the tracking backend.

    Args:
        base_url: Backend API root, e.g. ``http://host:5000/api``
        timeout: Ceiling in seconds for every call
        transport: Optional httpx transport (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={'Content-Type': 'application/json'},
            transport=transport,
            event_hooks={'request': [self._log_request], 'response': [self._log_response]},
        )

    def _api_path(self, url: httpx.URL) -> str:
        """Path relative to the API root, as used in log lines."""
        root = httpx.URL(self.base_url).path.rstrip('/')
        if root and url.path.startswith(root):
            return url.path[len(root):] or '/'
        return url.path

    async def _log_request(self, request: httpx.Request) -> None:
        logger.info("API request: %s %s", request.method, self._api_path(request.url))

    async def _log_response(self, response: httpx.Response) -> None:
        logger.info(
            "API response: %s - %d", self._api_path(response.request.url), response.status_code
        )

    @classmethod
    def from_settings(cls) -> 'TrackerApiClient':
        """Build a client for the backend configured in Django settings."""
        return cls(
            settings.TRACKER_API_URL,
            timeout=getattr(settings, 'TRACKER_API_TIMEOUT', DEFAULT_TIMEOUT_SECONDS),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> 'TrackerApiClient':
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Mapping[str, Any] | None = None,
        body: Any = None,
    ) -> Any:
        """
        Perform one request and return the decoded JSON body.

        Raises:
            RequestTimeout: If no response arrived within the timeout
            TransportError: If the backend could not be reached
            ServerError: On a non-2xx status or a non-JSON success body
        """
        query = clean_params(params) if params else None
        try:
            # httpx timeouts apply per phase; this bounds the whole call
            async with asyncio.timeout(self.timeout):
                response = await self._client.request(
                    method, path, params=query or None, json=body
                )
        except (httpx.TimeoutException, TimeoutError) as e:
            message = f"Error {operation}: timed out after {self.timeout:g}s"
            logger.error("API response error: %s", message)
            raise RequestTimeout(message, operation) from e
        except httpx.RequestError as e:
            message = f"Error {operation}: {str(e) or type(e).__name__}"
            logger.error("API response error: %s", message)
            raise TransportError(message, operation) from e

        if response.is_error:
            try:
                error_body: Any = response.json()
            except ValueError:
                error_body = response.text
            detail = _server_message(error_body) or (
                f"Request failed with status code {response.status_code}"
            )
            logger.error("API response error: %s", error_body or detail)
            raise ServerError(
                f"Error {operation}: {detail}",
                operation,
                status_code=response.status_code,
                body=error_body,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ServerError(
                f"Error {operation}: expected a JSON response",
                operation,
                status_code=response.status_code,
                body=response.text,
            ) from e

    def _decode(self, decoder: Any, payload: Any, operation: str) -> Any:
        try:
            return decoder(payload)
        except ValidationError as e:
            raise ServerError(f"Error {operation}: {e}", operation) from e

    async def list_locations(
        self,
        scope: str = '',
        limit: int | None = None,
        hours: int | None = None,
    ) -> list[Location]:
        """
        List locations, either for all machines or one machine.

        Args:
            scope: ``''`` for all machines, or ``machine_scope(name)``
            limit: Maximum number of locations
            hours: Recency window in hours

        Returns:
            Locations in backend order
        """
        operation = 'fetching locations'
        payload = await self._request(
            'GET', f"/locations{scope}", operation, params={'limit': limit, 'hours': hours}
        )
        return self._decode(
            lambda p: decode_many(Location, _field(p, 'locations'), 'location'),
            payload,
            operation,
        )

    async def list_machine_locations(
        self, machine_name: str, limit: int | None = None, hours: int | None = None
    ) -> list[Location]:
        """List the locations of one machine."""
        return await self.list_locations(machine_scope(machine_name), limit=limit, hours=hours)

    async def list_locations_by_date(self, date: str, limit: int | None = None) -> list[Location]:
        """List the locations reported on one day (``YYYY-MM-DD``)."""
        operation = f"fetching locations for date {date}"
        payload = await self._request(
            'GET', '/locations', operation, params={'date': date, 'limit': limit}
        )
        return self._decode(
            lambda p: decode_many(Location, _field(p, 'locations'), 'location'),
            payload,
            operation,
        )

    async def list_machines(self) -> list[Machine]:
        """List every tracked machine with its record count."""
        operation = 'fetching machines'
        payload = await self._request('GET', '/machines', operation)
        return self._decode(
            lambda p: decode_many(Machine, _field(p, 'machines'), 'machine'),
            payload,
            operation,
        )

    async def get_stats(self) -> Stats | None:
        """Fetch aggregate statistics; None when the backend sent none."""
        operation = 'fetching stats'
        payload = await self._request('GET', '/stats', operation)
        return self._decode(
            lambda p: _optional(Stats.from_payload, _field(p, 'statistics')),
            payload,
            operation,
        )

    async def get_database_info(self) -> DatabaseInfo | None:
        """Fetch the database diagnostic snapshot; None when absent."""
        operation = 'fetching database info'
        payload = await self._request('GET', '/database/info', operation)
        return self._decode(
            lambda p: _optional(DatabaseInfo.from_payload, _field(p, 'database')),
            payload,
            operation,
        )

    async def get_database_size(self) -> Any:
        """Fetch the backend's quick size summary, returned as sent."""
        return await self._request('GET', '/database/size', 'fetching database size')

    async def send_location(self, location: Mapping[str, Any]) -> Any:
        """Post a location report, as a device would. Used for testing."""
        return await self._request('POST', '/location', 'sending location', body=dict(location))

    async def clear_all(self, confirm: str = CLEAR_ALL_TOKEN) -> ClearResult:
        """
        Delete every location of every machine.

        Args:
            confirm: Token the backend requires before it deletes anything
        """
        operation = 'clearing all data'
        payload = await self._request(
            'DELETE', '/admin/clear-database', operation, body={'confirm': confirm}
        )
        return self._decode(ClearResult.from_payload, payload, operation)

    async def clear_machine(
        self, machine_name: str, confirm: str = CLEAR_MACHINE_TOKEN
    ) -> ClearResult:
        """
        Delete every location of one machine.

        Args:
            machine_name: Machine whose records are deleted
            confirm: Token the backend requires before it deletes anything
        """
        operation = 'clearing machine data'
        payload = await self._request(
            'DELETE',
            f"/admin/clear-machine/{quote(machine_name, safe='')}",
            operation,
            body={'confirm': confirm},
        )
        return self._decode(ClearResult.from_payload, payload, operation)

    async def check_health(self) -> bool:
        """Return True if the backend answers its stats endpoint."""
        try:
            await self._request('GET', '/stats', 'checking health')
        except RequestError as e:
            logger.warning("API health check failed: %s", e)
            return False
        return True


def _field(payload: Any, name: str) -> Any:
    if not isinstance(payload, Mapping):
        raise ValidationError(f"Expected an object with '{name}', got {type(payload).__name__}")
    return payload.get(name)


def _optional(decoder: Any, value: Any) -> Any:
    return None if value is None else decoder(value)
