"""
Shared viewer state and the transitions that keep it consistent.

``ViewerState`` is the single writer for everything the map, the sidebar
and the admin tab render from: the working set of locations, the machine
list, the selection, the filters and the loading/error flags. Renderers
only ever see an immutable ``ViewerSnapshot``.

Every kind of load is tagged with a per-key sequence number; a response
may only write state while its number is still the latest issued for its
key, so a slow earlier response never overwrites a newer one.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .api import TrackerApiClient, machine_scope
from .console import AdminPanel, AdminSnapshot
from .exceptions import RequestError, ValidationError
from .filters import Filters
from .records import Location, Machine, Stats
from .sequencing import RequestSequencer

logger = logging.getLogger(__name__)

VIEWER_TAB = 0
ADMIN_TAB = 1
TABS = (VIEWER_TAB, ADMIN_TAB)

ViewerListener = Callable[['ViewerSnapshot'], Awaitable[None]]
AdminListener = Callable[[AdminSnapshot], Awaitable[None]]


@dataclass(frozen=True)
class ViewerSnapshot:
    """Read-only view of the viewer state handed to renderers."""

    active_tab: int = VIEWER_TAB
    locations: tuple[Location, ...] = ()
    machines: tuple[Machine, ...] = ()
    selected_machine: str = ''
    selected_location: Location | None = None
    stats: Stats | None = None
    loading: bool = False
    error: str | None = None
    filters: Filters = field(default_factory=Filters)


class ViewerState:
    """
    Owner of the shared viewer state.

    Args:
        client: Backend API client; the state never closes it
        filters: Initial filters (defaults from settings)
        on_change: Awaited with a fresh snapshot after every state change
        on_admin_change: Forwarded to the admin panel while tab 1 is active
    """

    def __init__(
        self,
        client: TrackerApiClient,
        filters: Filters | None = None,
        on_change: ViewerListener | None = None,
        on_admin_change: AdminListener | None = None,
    ) -> None:
        self._client = client
        self._on_change = on_change
        self._on_admin_change = on_admin_change
        self._sequencer = RequestSequencer()
        self._in_flight = 0
        self._closed = False

        self.active_tab = VIEWER_TAB
        self.locations: tuple[Location, ...] = ()
        self.machines: tuple[Machine, ...] = ()
        self.selected_machine = ''
        self.selected_location: Location | None = None
        self.stats: Stats | None = None
        self.error: str | None = None
        self.filters = filters if filters is not None else Filters.from_settings()
        self.admin: AdminPanel | None = None

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> ViewerSnapshot:
        return ViewerSnapshot(
            active_tab=self.active_tab,
            locations=self.locations,
            machines=self.machines,
            selected_machine=self.selected_machine,
            selected_location=self.selected_location,
            stats=self.stats,
            loading=self.loading,
            error=self.error,
            filters=self.filters,
        )

    def find_location(self, location_id: Any) -> Location | None:
        """Return the location with the given id from the working set."""
        for location in self.locations:
            if location.id == location_id:
                return location
        return None

    async def _notify(self) -> None:
        if self._closed or self._on_change is None:
            return
        await self._on_change(self.snapshot())

    def _is_current(self, key: str, ticket: int) -> bool:
        if self._closed:
            logger.debug("Discarding %s response: viewer closed", key)
            return False
        if not self._sequencer.is_latest(key, ticket):
            logger.debug("Discarding stale %s response (request #%d)", key, ticket)
            return False
        return True

    async def mount(self) -> None:
        """Initial load and first location load, run concurrently."""
        await asyncio.gather(self.initial_load(), self.load_locations())

    async def initial_load(self) -> None:
        """
        Fetch machines and stats concurrently.

        Each fetch fills its own slot on success and records its own error
        on failure; one failing never blocks the other.
        """
        self._in_flight += 1
        await self._notify()
        try:
            await asyncio.gather(self._load_machines(), self._load_stats())
        finally:
            self._in_flight -= 1
        await self._notify()

    async def _load_machines(self) -> None:
        ticket = self._sequencer.issue('machines')
        try:
            machines = await self._client.list_machines()
        except RequestError as e:
            if self._is_current('machines', ticket):
                logger.warning("Machine list load failed: %s", e)
                self.error = str(e)
                await self._notify()
            return
        if self._is_current('machines', ticket):
            self.machines = tuple(machines)
            await self._notify()

    async def _load_stats(self) -> None:
        ticket = self._sequencer.issue('stats')
        try:
            stats = await self._client.get_stats()
        except RequestError as e:
            if self._is_current('stats', ticket):
                logger.warning("Stats load failed: %s", e)
                self.error = str(e)
                await self._notify()
            return
        if self._is_current('stats', ticket):
            self.stats = stats
            await self._notify()

    async def load_locations(self) -> None:
        """
        Replace the working set of locations.

        Machine-scoped loads send ``limit`` and ``hours``; unscoped loads
        send ``limit`` only. A failed load keeps the previous locations.
        """
        ticket = self._sequencer.issue('locations')
        machine = self.selected_machine
        filters = self.filters
        self._in_flight += 1
        self.error = None
        await self._notify()

        try:
            if machine:
                locations = await self._client.list_locations(
                    machine_scope(machine), limit=filters.limit, hours=filters.hours
                )
            else:
                locations = await self._client.list_locations(limit=filters.limit)
        except RequestError as e:
            if self._is_current('locations', ticket):
                logger.warning("Location load failed: %s", e)
                self.error = str(e)
        else:
            if self._is_current('locations', ticket):
                self.locations = tuple(locations)
                logger.debug(
                    "Loaded %d locations (%s)", len(self.locations), machine or 'all machines'
                )
        finally:
            self._in_flight -= 1
        await self._notify()

    async def select_machine(self, machine_name: str) -> None:
        """Select a machine ('' for all); always clears the selected location."""
        changed = machine_name != self.selected_machine
        self.selected_machine = machine_name
        self.selected_location = None
        await self._notify()
        if changed:
            await self.load_locations()

    async def select_location(self, location: Location | None) -> None:
        self.selected_location = location
        await self._notify()

    async def change_filters(self, changes: Mapping[str, Any]) -> None:
        """Shallow-merge filter changes and reload when the filters changed."""
        filters = self.filters.merge(changes)
        if filters == self.filters:
            await self._notify()
            return
        self.filters = filters
        await self.load_locations()

    async def refresh(self) -> None:
        """Re-run the location load and the initial load, independently."""
        await asyncio.gather(self.load_locations(), self.initial_load())

    async def switch_tab(self, tab: int) -> None:
        """
        Switch between the map (0) and the admin panel (1).

        Entering the admin tab mounts a fresh admin panel; leaving it
        discards the panel. Viewer data is untouched either way.

        Raises:
            ValidationError: If ``tab`` is not a known tab
        """
        if isinstance(tab, bool) or tab not in TABS:
            raise ValidationError(f"Expected tab 0 or 1, got {tab!r}", field='tab')
        if tab == self.active_tab:
            return
        self.active_tab = tab

        if self.admin is not None:
            self.admin.close()
            self.admin = None
        await self._notify()

        if tab == ADMIN_TAB:
            self.admin = AdminPanel(self._client, on_change=self._on_admin_change)
            await self.admin.mount()

    def close(self) -> None:
        """Stop applying results; responses still in flight become no-ops."""
        self._closed = True
        if self.admin is not None:
            self.admin.close()
