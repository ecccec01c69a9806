"""
WebSocket consumer hosting one viewer session per connection.

The browser sends operator actions as JSON ``{"action": ...}`` messages;
the consumer applies them to its ``ViewerState`` (and, while the admin tab
is open, to the state's ``AdminPanel``) and pushes a fresh rendered model
after every state change.
"""
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any

from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.core.serializers.json import DjangoJSONEncoder

from viewer import STARTUP_TIMESTAMP

from .api import TrackerApiClient
from .console import AdminPanel, AdminSnapshot, render_admin
from .exceptions import ValidationError
from .map_view import render_map
from .sidebar import render_header, render_sidebar
from .state import ViewerSnapshot, ViewerState

logger = logging.getLogger(__name__)

VIEWER_ACTIONS = {
    'select_machine': 'handle_select_machine',
    'select_location': 'handle_select_location',
    'change_filters': 'handle_change_filters',
    'refresh': 'handle_refresh',
    'switch_tab': 'handle_switch_tab',
}

ADMIN_ACTIONS = {
    'admin_reload_machines': 'handle_admin_reload_machines',
    'admin_reload_database': 'handle_admin_reload_database',
    'admin_open_clear_all': 'handle_admin_open_clear_all',
    'admin_open_clear_machine': 'handle_admin_open_clear_machine',
    'admin_type_confirmation': 'handle_admin_type_confirmation',
    'admin_cancel': 'handle_admin_cancel',
    'admin_submit': 'handle_admin_submit',
    'admin_dismiss': 'handle_admin_dismiss',
}


class ViewerConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for one live viewer session.

    Actions run as independent tasks, so a slow backend call never holds
    up the actions that follow it.
    """

    client: TrackerApiClient
    state: ViewerState

    @classmethod
    async def encode_json(cls, content: Any) -> str:
        return json.dumps(content, cls=DjangoJSONEncoder)

    def get_client_address(self) -> str:
        """Get formatted client address (IP:port)."""
        client = self.scope.get('client')
        if client and len(client) > 1:
            return f"{client[0]}:{client[1]}"
        if client:
            return str(client[0])
        return 'unknown'

    async def connect(self) -> None:
        """Accept the connection and mount a fresh viewer session."""
        self._tasks: set[asyncio.Task] = set()
        self.client = TrackerApiClient.from_settings()
        self.state = ViewerState(
            self.client,
            on_change=self.push_viewer,
            on_admin_change=self.push_admin,
        )
        await self.accept()

        client_addr = self.get_client_address()
        logger.info(
            f"Viewer client connected from {client_addr}",
            extra={"channel": self.channel_name, "client_address": client_addr}
        )

        # Clients use the startup timestamp to detect backend restarts
        await self.send_json({'type': 'welcome', 'server_startup': STARTUP_TIMESTAMP})
        self._spawn(self.state.mount())

    async def disconnect(self, close_code: int) -> None:
        """Close the session; responses still in flight no longer apply."""
        self.state.close()
        for task in list(self._tasks):
            task.cancel()
        await self.client.aclose()

        client_addr = self.get_client_address()
        logger.info(
            f"Viewer client disconnected from {client_addr}",
            extra={"channel": self.channel_name, "client_address": client_addr, "close_code": close_code}
        )

    def _spawn(self, coro: Any) -> asyncio.Task:
        task = asyncio.create_task(self._run(coro))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, coro: Any) -> None:
        try:
            await coro
        except ValidationError as e:
            logger.info("Rejected viewer action: %s", e)
            await self.send_json({'type': 'error', 'message': str(e)})
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Viewer action failed")
            await self.send_json({'type': 'error', 'message': 'Internal error'})

    async def receive_json(self, content: Any, **kwargs: Any) -> None:
        """Dispatch one operator action."""
        action = content.get('action') if isinstance(content, dict) else None
        handler_name = VIEWER_ACTIONS.get(action) or ADMIN_ACTIONS.get(action)
        if handler_name is None:
            logger.warning("Unknown viewer action: %r", action)
            await self.send_json({'type': 'error', 'message': f"Unknown action '{action}'"})
            return
        logger.debug("Viewer action %s from %s", action, self.get_client_address())
        self._spawn(getattr(self, handler_name)(content))

    async def push_viewer(self, snapshot: ViewerSnapshot) -> None:
        await self.send_json({
            'type': 'viewer',
            'tab': snapshot.active_tab,
            'header': asdict(render_header(snapshot)),
            'map': asdict(render_map(snapshot)),
            'sidebar': asdict(render_sidebar(snapshot)),
        })

    async def push_admin(self, snapshot: AdminSnapshot) -> None:
        await self.send_json({'type': 'admin', **render_admin(snapshot)})

    async def handle_select_machine(self, content: dict[str, Any]) -> None:
        await self.state.select_machine(str(content.get('machine') or ''))

    async def handle_select_location(self, content: dict[str, Any]) -> None:
        location_id = content.get('id')
        if location_id is None:
            await self.state.select_location(None)
            return
        location = self.state.find_location(location_id)
        if location is None:
            raise ValidationError(f"Expected a loaded location id, got {location_id!r}", field='id')
        await self.state.select_location(location)

    async def handle_change_filters(self, content: dict[str, Any]) -> None:
        changes = content.get('filters')
        if not isinstance(changes, dict):
            raise ValidationError("Expected 'filters' to be an object", field='filters')
        await self.state.change_filters(changes)

    async def handle_refresh(self, content: dict[str, Any]) -> None:
        await self.state.refresh()

    async def handle_switch_tab(self, content: dict[str, Any]) -> None:
        await self.state.switch_tab(content.get('tab'))  # type: ignore[arg-type]

    def _admin(self) -> AdminPanel:
        if self.state.admin is None:
            raise ValidationError("The admin panel is not open", field='tab')
        return self.state.admin

    async def handle_admin_reload_machines(self, content: dict[str, Any]) -> None:
        await self._admin().load_machines()

    async def handle_admin_reload_database(self, content: dict[str, Any]) -> None:
        await self._admin().load_database_info()

    async def handle_admin_open_clear_all(self, content: dict[str, Any]) -> None:
        await self._admin().open_clear_all()

    async def handle_admin_open_clear_machine(self, content: dict[str, Any]) -> None:
        await self._admin().open_clear_machine(str(content.get('machine') or ''))

    async def handle_admin_type_confirmation(self, content: dict[str, Any]) -> None:
        await self._admin().type_confirmation(str(content.get('text') or ''))

    async def handle_admin_cancel(self, content: dict[str, Any]) -> None:
        await self._admin().cancel()

    async def handle_admin_submit(self, content: dict[str, Any]) -> None:
        await self._admin().submit()

    async def handle_admin_dismiss(self, content: dict[str, Any]) -> None:
        await self._admin().dismiss_notification()
