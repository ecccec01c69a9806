"""Shared test fixtures for the location viewer."""

import asyncio
import json
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

import httpx
import pytest
from django.utils import timezone

from viewer.api import TrackerApiClient
from viewer.exceptions import RequestError
from viewer.records import (ClearResult, DatabaseInfo, Location, Machine,
                            Stats)

API_URL = 'http://tracker.test/api'


def iso(moment: datetime) -> str:
    return moment.isoformat()


def location_payload(
    location_id: int,
    machine_name: str = 'LAPTOP-1',
    age: timedelta = timedelta(minutes=5),
    now: datetime | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a backend location record reported ``age`` before ``now``."""
    now = now or timezone.now()
    payload = {
        'id': location_id,
        'machine_name': machine_name,
        'latitude': -12.05 + location_id / 1000,
        'longitude': -77.04 - location_id / 1000,
        'user_name': 'alice',
        'location_source': 'wifi',
        'city': 'Lima',
        'country': 'Peru',
        'created_at': iso(now - age),
    }
    payload.update(extra)
    return payload


def make_location(location_id: int, **kwargs: Any) -> Location:
    return Location.from_payload(location_payload(location_id, **kwargs))


def make_machine(name: str, count: int = 1, age: timedelta = timedelta(minutes=5)) -> Machine:
    return Machine(name=name, count=count, last_seen=timezone.now() - age)


def json_response(body: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json=body)


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> TrackerApiClient:
    """A real API client whose requests are answered by ``handler``."""
    return TrackerApiClient(API_URL, timeout=2.0, transport=httpx.MockTransport(handler))


class FakeTrackerApi:
    """
    In-memory stand-in for ``TrackerApiClient``.

    Each operation returns the configured result, or raises the configured
    error. Setting ``gates[name]`` to an ``asyncio.Event`` holds calls to
    that operation until the event is set. Every call is recorded in
    ``calls`` as ``(operation, args, kwargs)``.
    """

    def __init__(self) -> None:
        self.locations: list[Location] = []
        self.locations_by_scope: dict[str, list[Location]] = {}
        self.machines: list[Machine] = []
        self.stats: Stats | None = Stats(total_locations=0, unique_machines=0)
        self.database_info: DatabaseInfo | None = DatabaseInfo(
            size_mb=1.5, size_human='1.5 MB', total_records=0, page_count=384, page_size=4096
        )
        self.clear_result = ClearResult(message='Deleted', deleted_records=0)
        self.errors: dict[str, RequestError] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, tuple, dict]] = []
        self.closed = False

    async def _call(self, name: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((name, args, kwargs))
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        error = self.errors.get(name)
        if error is not None:
            raise error

    def calls_to(self, name: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for call, args, kwargs in self.calls if call == name]

    async def list_locations(self, scope: str = '', limit: int | None = None,
                             hours: int | None = None) -> list[Location]:
        kwargs: dict[str, Any] = {'limit': limit}
        if hours is not None:
            kwargs['hours'] = hours
        await self._call('list_locations', scope, **kwargs)
        return list(self.locations_by_scope.get(scope, self.locations))

    async def list_machines(self) -> list[Machine]:
        await self._call('list_machines')
        return list(self.machines)

    async def get_stats(self) -> Stats | None:
        await self._call('get_stats')
        return self.stats

    async def get_database_info(self) -> DatabaseInfo | None:
        await self._call('get_database_info')
        return self.database_info

    async def clear_all(self, confirm: str) -> ClearResult:
        await self._call('clear_all', confirm)
        return self.clear_result

    async def clear_machine(self, machine_name: str, confirm: str) -> ClearResult:
        await self._call('clear_machine', machine_name, confirm)
        return self.clear_result

    async def aclose(self) -> None:
        self.closed = True


class Recorder:
    """Async listener that keeps every snapshot it is handed."""

    def __init__(self) -> None:
        self.snapshots: list[Any] = []

    async def __call__(self, snapshot: Any) -> None:
        self.snapshots.append(snapshot)

    @property
    def last(self) -> Any:
        return self.snapshots[-1]


@pytest.fixture
def fake_api() -> FakeTrackerApi:
    """Provide a fresh in-memory tracker API."""
    return FakeTrackerApi()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()
