"""Composition root wiring identity, sync engines and the dashboard view."""

# purpose: build the explicit sync context once and own the session's streams and tasks
# inputs: AppConfig, document store, identity provider
# outputs: DashboardSession exposing readiness, settings, the dashboard view and selection
# status: pilot

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from .collection_sync import CollectionSyncEngine
from .config import AppConfig, load_config
from .derived import DashboardViewModel
from .errors import ConfigMissing
from .gestures import LongPressTimer
from .identity import IdentityBootstrapper, IdentityProvider, LocalIdentityProvider
from .schemas import DashboardView, InspectionRecord, Principal, Role, SeedReport, SettingsRecord
from .settings_sync import SettingsSyncEngine
from .store import DocumentStore, build_store
from .streams import Stream, first_matching

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncContext:
    """Backend handles shared by every engine of one session."""

    config: AppConfig
    store: Optional[DocumentStore] = None
    identity: Optional[IdentityProvider] = None


def build_context(config: Optional[AppConfig] = None) -> SyncContext:
    config = config or load_config()
    try:
        store_config = config.require_store()
    except ConfigMissing:
        return SyncContext(config=config)
    return SyncContext(
        config=config,
        store=build_store(store_config),
        identity=LocalIdentityProvider(config.token_map),
    )


class DashboardSession:
    """One principal's session: bootstrap once, then mirror settings and inspections.

    Without a store the session still completes bootstrap with a degraded
    identity and local default settings, so consumers leave the not-ready
    state; no remote mirroring happens.
    """

    def __init__(self, context: SyncContext) -> None:
        self.context = context
        app_id = context.config.app_id
        self.bootstrapper = IdentityBootstrapper(context.identity)
        self.settings = SettingsSyncEngine(context.store, app_id)
        self.collection = CollectionSyncEngine(context.store, app_id) if context.store is not None else None
        self.view_model = DashboardViewModel()
        self.long_press: LongPressTimer[InspectionRecord] = LongPressTimer(self.select_inspection)
        self.selected: Optional[InspectionRecord] = None
        self.seed_report: Optional[SeedReport] = None
        self._started = False
        self._seed_task: Optional[asyncio.Task] = None
        self._tasks: list[asyncio.Task] = []
        self._watches: list[Stream] = []

    @property
    def principal(self) -> Optional[Principal]:
        return self.bootstrapper.principal

    @property
    def remote_sync(self) -> bool:
        return self.collection is not None

    @property
    def ready(self) -> bool:
        return self.bootstrapper.ready.is_set() and self.settings.current is not None

    @property
    def role(self) -> Optional[Role]:
        current = self.settings.current
        return current.role if current else None

    @property
    def view(self) -> DashboardView:
        return self.view_model.view

    async def start(self) -> Principal:
        if self._started:
            raise RuntimeError("session already started")
        self._started = True
        principal = await self.bootstrapper.bootstrap(self.context.config)
        if self.collection is None:
            self.settings.resolve_locally()
            return principal

        self._seed_task = asyncio.create_task(self._seed(principal))
        # remote stream stays open inside the engine
        (await self.settings.subscribe(principal)).close()
        mirror_watch = await self.collection.subscribe()
        self._watches.append(mirror_watch)
        self._tasks.append(asyncio.create_task(self._dispatch_mirror(mirror_watch)))
        return principal

    async def wait_ready(self) -> SettingsRecord:
        await self.bootstrapper.wait_ready()
        if self.settings.current is not None:
            return self.settings.current
        async with self.settings.watch() as watch:
            return await first_matching(watch, lambda _record: True)

    def set_role(self, role: Role | str) -> SettingsRecord:
        return self.settings.set_role(role)

    def set_dark_mode(self, flag: bool) -> SettingsRecord:
        return self.settings.set_dark_mode(flag)

    def set_search_term(self, search_term: str) -> DashboardView:
        return self.view_model.set_search_term(search_term)

    def select_inspection(self, record: InspectionRecord) -> None:
        self.selected = record
        _logger.info("Long press detected on: %s. Opening detail view.", record.title)

    def clear_selection(self) -> None:
        self.selected = None

    async def close(self) -> None:
        self.long_press.cancel()
        await self.settings.wait_for_pending_writes()
        if self._seed_task is not None and not self._seed_task.done():
            self._seed_task.cancel()
        for watch in self._watches:
            watch.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.settings.close()
        if self.collection is not None:
            await self.collection.close()
        self.view_model.close()
        self.bootstrapper.close()

    async def wait_seeded(self) -> Optional[SeedReport]:
        if self._seed_task is not None:
            await asyncio.shield(self._seed_task)
        return self.seed_report

    async def _seed(self, principal: Principal) -> None:
        self.seed_report = await self.collection.ensure_seeded(principal)
        if self.seed_report.failed:
            _logger.warning("Seeding finished partially; failed ids: %s", self.seed_report.failed)

    async def _dispatch_mirror(self, watch: Stream) -> None:
        async for mirror in watch:
            self.view_model.apply_mirror(mirror)
