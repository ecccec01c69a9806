"""
Administration panel: machine inventory, database diagnostics and the two
irreversible delete operations.

Each delete is gated twice. The operator must type an exact phrase before
the panel will call the backend at all, and the call itself carries the
fixed token the backend checks on its own. Results and failures surface as
transient notifications that dismiss themselves after a fixed interval.
"""
import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any

from django.conf import settings
from django.utils import timezone

from .api import CLEAR_ALL_TOKEN, CLEAR_MACHINE_TOKEN, TrackerApiClient
from .exceptions import RequestError, ValidationError
from .formatting import format_time_ago, format_timestamp
from .records import ClearResult, DatabaseInfo, Machine
from .sequencing import RequestSequencer

logger = logging.getLogger(__name__)

CLEAR_ALL = 'clear_all'
CLEAR_MACHINE = 'clear_machine'

SUCCESS = 'success'
ERROR = 'error'

DEFAULT_NOTIFICATION_SECONDS = 6.0
DEFAULT_SUCCESS_MESSAGE = 'Data deleted'


def confirmation_phrase(operation: str) -> str:
    """Return the phrase an operator must type to confirm ``operation``."""
    if operation == CLEAR_ALL:
        return getattr(settings, 'VIEWER_CLEAR_ALL_PHRASE', 'DELETE ALL')
    if operation == CLEAR_MACHINE:
        return getattr(settings, 'VIEWER_CLEAR_MACHINE_PHRASE', 'DELETE MACHINE')
    raise ValidationError(f"Unknown admin operation '{operation}'", field='operation')


@dataclass
class ConfirmationDialog:
    """An open confirmation dialog and the text typed into it so far."""

    operation: str
    phrase: str
    machine_name: str = ''
    text: str = ''

    @property
    def matches(self) -> bool:
        """Exact, case- and whitespace-sensitive match."""
        return self.text == self.phrase

    @property
    def mismatch(self) -> bool:
        return self.text != '' and not self.matches

    def require_match(self) -> None:
        if not self.matches:
            raise ValidationError(f'Type "{self.phrase}" to confirm', field='confirmation')


@dataclass(frozen=True)
class Notification:
    id: int
    message: str
    severity: str


@dataclass(frozen=True)
class AdminSnapshot:
    """Read-only view of the admin panel handed to renderers."""

    machines: tuple[Machine, ...]
    database_info: DatabaseInfo | None
    loading: bool
    dialog: ConfirmationDialog | None
    can_submit: bool
    notification: Notification | None


class AdminPanel:
    """
    Admin panel state, independent of the map viewer.

    Args:
        client: Backend API client; the panel never closes it
        on_change: Awaited with a fresh snapshot after every state change
        notification_seconds: How long a notification stays visible
    """

    def __init__(
        self,
        client: TrackerApiClient,
        on_change: Callable[[AdminSnapshot], Awaitable[None]] | None = None,
        notification_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._on_change = on_change
        if notification_seconds is None:
            notification_seconds = getattr(
                settings, 'VIEWER_NOTIFICATION_SECONDS', DEFAULT_NOTIFICATION_SECONDS
            )
        self.notification_seconds = notification_seconds
        self._in_flight = 0
        self._closed = False
        self._sequencer = RequestSequencer()
        self._notification_ids = itertools.count(1)
        self._dismiss_task: asyncio.Task | None = None

        self.machines: tuple[Machine, ...] = ()
        self.database_info: DatabaseInfo | None = None
        self.dialog: ConfirmationDialog | None = None
        self.notification: Notification | None = None

    @property
    def loading(self) -> bool:
        return self._in_flight > 0

    @property
    def can_submit(self) -> bool:
        return self.dialog is not None and self.dialog.matches and not self.loading

    def snapshot(self) -> AdminSnapshot:
        dialog = None
        if self.dialog is not None:
            dialog = ConfirmationDialog(
                self.dialog.operation, self.dialog.phrase,
                self.dialog.machine_name, self.dialog.text,
            )
        return AdminSnapshot(
            machines=self.machines,
            database_info=self.database_info,
            loading=self.loading,
            dialog=dialog,
            can_submit=self.can_submit,
            notification=self.notification,
        )

    async def _notify(self) -> None:
        if self._closed or self._on_change is None:
            return
        await self._on_change(self.snapshot())

    async def mount(self) -> None:
        await asyncio.gather(self.load_machines(), self.load_database_info())

    async def load_machines(self) -> None:
        ticket = self._sequencer.issue('machines')
        self._in_flight += 1
        await self._notify()
        try:
            machines = await self._client.list_machines()
        except RequestError as e:
            if self._is_current('machines', ticket):
                logger.warning("Admin machine list load failed: %s", e)
                self._show(f"Error loading machines: {e}", ERROR)
        else:
            if self._is_current('machines', ticket):
                self.machines = tuple(machines)
        finally:
            self._in_flight -= 1
        await self._notify()

    async def load_database_info(self) -> None:
        ticket = self._sequencer.issue('database')
        try:
            database_info = await self._client.get_database_info()
        except RequestError as e:
            if self._is_current('database', ticket):
                logger.warning("Database info load failed: %s", e)
                self._show(f"Error loading database info: {e}", ERROR)
                await self._notify()
            return
        if self._is_current('database', ticket):
            self.database_info = database_info
            await self._notify()

    def _is_current(self, key: str, ticket: int) -> bool:
        if self._closed:
            return False
        if not self._sequencer.is_latest(key, ticket):
            logger.debug("Discarding stale admin %s response (request #%d)", key, ticket)
            return False
        return True

    async def open_clear_all(self) -> None:
        self.dialog = ConfirmationDialog(CLEAR_ALL, confirmation_phrase(CLEAR_ALL))
        await self._notify()

    async def open_clear_machine(self, machine_name: str) -> None:
        if not machine_name:
            raise ValidationError("A machine name is required", field='machine_name')
        self.dialog = ConfirmationDialog(
            CLEAR_MACHINE, confirmation_phrase(CLEAR_MACHINE), machine_name=machine_name
        )
        await self._notify()

    async def type_confirmation(self, text: str) -> None:
        if self.dialog is None:
            raise ValidationError("No confirmation dialog is open", field='confirmation')
        self.dialog.text = text
        await self._notify()

    async def cancel(self) -> None:
        self.dialog = None
        await self._notify()

    async def submit(self) -> ClearResult | None:
        """
        Run the confirmed delete operation.

        On success the dialog closes, its text is reset, and both the
        machine list and database info are reloaded. On failure the dialog
        stays open. Either outcome is reported as a notification. A submit
        made while a request is already in flight is ignored.

        Returns:
            The backend's acknowledgement, or None if nothing was deleted
        """
        dialog = self.dialog
        if dialog is None:
            raise ValidationError("No confirmation dialog is open", field='confirmation')
        try:
            dialog.require_match()
        except ValidationError as e:
            self._show(str(e), ERROR)
            await self._notify()
            return None
        if self.loading:
            logger.info("Ignoring admin %s submit: a request is in flight", dialog.operation)
            return None

        self._in_flight += 1
        await self._notify()
        try:
            if dialog.operation == CLEAR_ALL:
                result = await self._client.clear_all(CLEAR_ALL_TOKEN)
            else:
                result = await self._client.clear_machine(dialog.machine_name, CLEAR_MACHINE_TOKEN)
        except RequestError as e:
            logger.error("Admin %s failed: %s", dialog.operation, e)
            self._show(f"Error deleting data: {e}", ERROR)
            return None
        finally:
            self._in_flight -= 1
            await self._notify()

        logger.warning(
            "Admin %s%s deleted %d records",
            dialog.operation,
            f" ({dialog.machine_name})" if dialog.machine_name else '',
            result.deleted_records,
        )
        message = result.message or DEFAULT_SUCCESS_MESSAGE
        self._show(f"{message}. Deleted records: {result.deleted_records}", SUCCESS)
        if self.dialog is dialog:
            self.dialog = None
        await self._notify()
        await asyncio.gather(self.load_machines(), self.load_database_info())
        return result

    def _show(self, message: str, severity: str) -> None:
        """Replace the current notification and schedule its dismissal."""
        if self._closed:
            return
        notification = Notification(next(self._notification_ids), message, severity)
        self.notification = notification
        if self._dismiss_task is not None:
            self._dismiss_task.cancel()
        self._dismiss_task = asyncio.create_task(self._auto_dismiss(notification))

    async def _auto_dismiss(self, notification: Notification) -> None:
        await asyncio.sleep(self.notification_seconds)
        if self.notification is notification:
            self.notification = None
            await self._notify()

    async def dismiss_notification(self) -> None:
        self.notification = None
        if self._dismiss_task is not None:
            self._dismiss_task.cancel()
            self._dismiss_task = None
        await self._notify()

    def close(self) -> None:
        self._closed = True
        if self._dismiss_task is not None:
            self._dismiss_task.cancel()
            self._dismiss_task = None


def _not_available(value: object) -> object:
    return 'N/A' if value is None else value


def render_admin(snapshot: AdminSnapshot, now: datetime | None = None) -> dict[str, Any]:
    """Build the JSON-ready admin panel model for a snapshot."""
    now = now or timezone.now()
    info = snapshot.database_info
    database = None
    if info is not None:
        database = {
            'size_human': _not_available(info.size_human),
            'size_mb': _not_available(info.size_mb),
            'total_records': info.total_records or 0,
            'page_count': info.page_count or 0,
            'page_size': _not_available(info.page_size),
            'last_modified': (
                format_timestamp(info.last_modified) if info.last_modified else 'N/A'
            ),
        }

    dialog = None
    if snapshot.dialog is not None:
        dialog = {
            'operation': snapshot.dialog.operation,
            'machine_name': snapshot.dialog.machine_name,
            'phrase': snapshot.dialog.phrase,
            'text': snapshot.dialog.text,
            'mismatch': snapshot.dialog.mismatch,
        }

    notification = None
    if snapshot.notification is not None:
        notification = asdict(snapshot.notification)

    return {
        'machines': [
            {
                'name': machine.name,
                'count': machine.count,
                'last_seen': format_timestamp(machine.last_seen),
                'last_seen_ago': format_time_ago(machine.last_seen, now),
            }
            for machine in snapshot.machines
        ],
        'database': database,
        'loading': snapshot.loading,
        'dialog': dialog,
        'can_submit': snapshot.can_submit,
        'notification': notification,
    }
