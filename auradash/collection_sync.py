"""Shared inspection collection: one-time seeding and snapshot mirroring."""

# purpose: seed the shared inspection collection when empty and mirror it wholesale
# inputs: document store, seed records, collection snapshots
# outputs: SeedReport for the seeding attempt and a stream of immutable CollectionMirror values
# status: pilot

from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from . import metrics
from .data.loaders import get_seed_inspections
from .errors import ListenerError, SyncError, WriteFailure
from .schemas import CollectionMirror, InspectionRecord, Principal, SeedReport
from .store import DocumentStore, inspections_path
from .streams import StateChannel, Stream

_logger = logging.getLogger(__name__)


def build_mirror(snapshot: Iterable[dict[str, Any]], path: str = "") -> CollectionMirror:
    """Validate every document of a snapshot; malformed documents are dropped."""

    records = []
    for document in snapshot:
        try:
            records.append(InspectionRecord.model_validate(document))
        except ValidationError as exc:
            _logger.warning(
                "Dropping malformed inspection %s in %s: %s",
                document.get("id"),
                path,
                exc.errors()[0]["msg"],
            )
    return CollectionMirror(records)


class CollectionSyncEngine:
    def __init__(
        self,
        store: DocumentStore,
        app_id: str,
        seeds: Optional[Iterable[InspectionRecord]] = None,
    ) -> None:
        self._store = store
        self._path = inspections_path(app_id)
        self._seeds = tuple(seeds) if seeds is not None else get_seed_inspections()
        self._seed_attempted = False
        self._channel: StateChannel[CollectionMirror] = StateChannel()
        self._remote: Optional[Stream[list[dict[str, Any]]]] = None
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def mirror(self) -> CollectionMirror:
        return self._channel.value or CollectionMirror()

    async def ensure_seeded(self, principal: Principal) -> SeedReport:
        """Write the seed records once if the collection is empty.

        Each record is written independently; failures are logged and listed
        in the report, never raised. Later calls on the same engine are no-ops.
        """

        if self._seed_attempted:
            return SeedReport(skipped=True)
        self._seed_attempted = True
        try:
            existing = await self._store.list_collection_once(self._path)
        except Exception as exc:
            metrics.record_error(getattr(exc, "kind", SyncError.kind))
            _logger.error("Could not check %s for seeding: %s", self._path, exc)
            return SeedReport(error=str(exc))
        if existing:
            return SeedReport(already_populated=True)

        _logger.info("Initializing %d seed inspections for %s (principal %s)", len(self._seeds), self._path, principal.id)
        results = await asyncio.gather(*(self._write_seed(record) for record in self._seeds))
        failed = [record.id for record, ok in zip(self._seeds, results) if not ok]
        return SeedReport(attempted=len(self._seeds), written=len(self._seeds) - len(failed), failed=failed)

    async def subscribe(self) -> Stream[CollectionMirror]:
        """Open the collection stream once and return a watcher stream.

        The first mirrors may be empty or partially seeded; the mirror only
        converges to the seeded state eventually.
        """

        if self._remote is None:
            self._remote = await self._store.subscribe_collection(self._path)
            self._pump_task = asyncio.create_task(self._pump(self._remote))
        return self._channel.watch()

    def watch(self) -> Stream[CollectionMirror]:
        return self._channel.watch()

    async def close(self) -> None:
        if self._remote is not None:
            self._remote.close()
        if self._pump_task is not None:
            self._pump_task.cancel()
            await asyncio.gather(self._pump_task, return_exceptions=True)
        self._channel.close()

    async def _write_seed(self, record: InspectionRecord) -> bool:
        try:
            await self._store.set_collection_document(self._path, record.id, record.to_wire())
        except Exception as exc:
            metrics.record_error(getattr(exc, "kind", WriteFailure.kind))
            metrics.SEED_WRITES.labels("failed").inc()
            _logger.error("Error setting seed inspection %s: %s", record.id, exc)
            return False
        metrics.SEED_WRITES.labels("written").inc()
        return True

    async def _pump(self, remote: Stream[list[dict[str, Any]]]) -> None:
        try:
            async for snapshot in remote:
                metrics.SNAPSHOTS_APPLIED.labels("inspections").inc()
                self._channel.publish(build_mirror(snapshot, self._path))
        except ListenerError as exc:
            metrics.record_error(exc.kind)
            _logger.error("Inspection listener failed, keeping last mirror: %s", exc)
