"""Per-principal settings document synchronization."""

# purpose: mirror the settings document, initialise or backfill it once, apply optimistic updates
# inputs: principal, document store, remote settings snapshots
# outputs: SettingsRecord stream where the latest remote snapshot always wins
# status: pilot

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from . import metrics
from .errors import ListenerError, WriteFailure
from .schemas import DEFAULT_DARK_MODE, DEFAULT_ROLE, Principal, Role, SettingsRecord, utc_stamp
from .store import DocumentStore, settings_path
from .streams import StateChannel, Stream

_logger = logging.getLogger(__name__)

ROLE_FIELD = "role"
DARK_MODE_FIELD = "isDark"
UPDATED_FIELD = "lastUpdated"


class SettingsSyncEngine:
    def __init__(self, store: Optional[DocumentStore], app_id: str) -> None:
        self._store = store
        self._app_id = app_id
        self._channel: StateChannel[SettingsRecord] = StateChannel()
        self._remote: Optional[Stream[Optional[dict[str, Any]]]] = None
        self._pump_task: Optional[asyncio.Task] = None
        self._pending: set[asyncio.Task] = set()
        self._path: Optional[str] = None
        self._first_delivered = False

    @property
    def current(self) -> Optional[SettingsRecord]:
        return self._channel.value

    @property
    def path(self) -> Optional[str]:
        return self._path

    async def subscribe(self, principal: Principal) -> Stream[SettingsRecord]:
        """Open the remote settings stream once and return a watcher stream."""

        if self._remote is None and self._store is not None:
            self._path = settings_path(self._app_id, principal.id)
            self._remote = await self._store.subscribe_document(self._path)
            self._pump_task = asyncio.create_task(self._pump(self._remote))
        return self._channel.watch()

    def watch(self) -> Stream[SettingsRecord]:
        return self._channel.watch()

    def resolve_locally(self) -> Optional[SettingsRecord]:
        """Resolve to defaults without a remote document (no store configured)."""

        if self.current is None:
            self._publish(SettingsRecord.defaults())
        return self.current

    def set_role(self, role: Role | str) -> SettingsRecord:
        role = Role(role)
        record = self._optimistic(role=role)
        self._write({ROLE_FIELD: role.value, UPDATED_FIELD: record.last_updated})
        return record

    def set_dark_mode(self, flag: bool) -> SettingsRecord:
        record = self._optimistic(dark_mode=bool(flag))
        self._write({DARK_MODE_FIELD: record.dark_mode, UPDATED_FIELD: record.last_updated})
        return record

    async def wait_for_pending_writes(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        if self._remote is not None:
            self._remote.close()
        if self._pump_task is not None:
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)
        self._channel.close()

    async def _pump(self, remote: Stream[Optional[dict[str, Any]]]) -> None:
        try:
            async for snapshot in remote:
                self._apply_snapshot(snapshot)
        except ListenerError as exc:
            metrics.record_error(exc.kind)
            if self.current is None:
                _logger.error("Settings listener failed before first snapshot, using defaults: %s", exc)
                self._publish(SettingsRecord.defaults())
            else:
                _logger.error("Settings listener failed, keeping last known settings: %s", exc)

    def _apply_snapshot(self, snapshot: Optional[dict[str, Any]]) -> None:
        metrics.SNAPSHOTS_APPLIED.labels("settings").inc()
        first = not self._first_delivered
        self._first_delivered = True
        if snapshot is None:
            if first:
                record = SettingsRecord.defaults()
                self._publish(record)
                self._write(record.to_wire())
            else:
                _logger.warning("Settings document %s disappeared, keeping last known settings", self._path)
            return

        backfill: dict[str, Any] = {}
        role = self._read_role(snapshot)
        if role is None:
            role = self.current.role if self.current else DEFAULT_ROLE
            if first and ROLE_FIELD not in snapshot:
                backfill[ROLE_FIELD] = role.value
        dark_mode = snapshot.get(DARK_MODE_FIELD)
        if not isinstance(dark_mode, bool):
            if dark_mode is not None:
                _logger.warning("Ignoring invalid %s value %r in %s", DARK_MODE_FIELD, dark_mode, self._path)
            dark_mode = self.current.dark_mode if self.current else DEFAULT_DARK_MODE
            if first and DARK_MODE_FIELD not in snapshot:
                backfill[DARK_MODE_FIELD] = dark_mode
        last_updated = snapshot.get(UPDATED_FIELD)
        record = SettingsRecord(
            role=role,
            dark_mode=dark_mode,
            last_updated=last_updated if isinstance(last_updated, str) else None,
        )
        self._publish(record)
        if backfill:
            backfill[UPDATED_FIELD] = utc_stamp()
            _logger.info("Backfilling settings fields %s in %s", sorted(backfill), self._path)
            self._write(backfill)

    def _read_role(self, snapshot: dict[str, Any]) -> Optional[Role]:
        value = snapshot.get(ROLE_FIELD)
        if value is None:
            return None
        try:
            return Role(value)
        except ValueError:
            _logger.warning("Ignoring unknown role %r in %s", value, self._path)
            return None

    def _publish(self, record: SettingsRecord) -> None:
        previous = self.current
        if previous is None or previous.role is not record.role:
            _logger.info("Active role: %s", record.role.value)
        self._channel.publish(record)

    def _optimistic(self, **changes: Any) -> SettingsRecord:
        base = self.current or SettingsRecord.defaults()
        record = base.model_copy(update={**changes, "last_updated": utc_stamp()})
        self._publish(record)
        return record

    def _write(self, partial: dict[str, Any]) -> None:
        if self._store is None or self._path is None:
            return
        task = asyncio.create_task(self._store.set_document_merge(self._path, partial))
        self._pending.add(task)
        task.add_done_callback(self._write_done)

    def _write_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        if isinstance(exc, WriteFailure):
            metrics.record_error(exc.kind)
            _logger.error("Settings write failed, keeping local state: %s", exc)
        else:
            metrics.record_error("write_failure")
            _logger.error("Unexpected settings write error for %s", self._path, exc_info=exc)
