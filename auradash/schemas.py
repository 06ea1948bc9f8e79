"""Pydantic data model for mirrored settings, inspections and derived views."""

# purpose: define the local shapes of remote documents and the values exposed to consumers
# status: pilot

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_stamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class Role(str, Enum):
    TECHNICIAN = "Technician"
    MANAGER = "Manager"


class InspectionStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    SCHEDULED = "Scheduled"
    FLAGGED = "Flagged"


class Principal(BaseModel):
    """Identity of the current session, authenticated or locally synthesized."""

    id: str
    degraded: bool = False
    model_config = ConfigDict(frozen=True)


DEFAULT_ROLE = Role.TECHNICIAN
DEFAULT_DARK_MODE = True


class SettingsRecord(BaseModel):
    """Per-principal settings document.

    Field aliases are the remote wire names; ``by_alias`` dumps produce the
    payload written to the store.
    """

    role: Role = DEFAULT_ROLE
    dark_mode: bool = Field(DEFAULT_DARK_MODE, alias="isDark")
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def defaults(cls) -> "SettingsRecord":
        return cls(role=DEFAULT_ROLE, dark_mode=DEFAULT_DARK_MODE, last_updated=utc_stamp())

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class InspectionRecord(BaseModel):
    id: str
    title: str
    category: str
    location: str
    status: InspectionStatus
    timestamp_label: str = Field("", alias="timestamp")
    critical: bool = False
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class CollectionMirror(Mapping[str, InspectionRecord]):
    """Read-only ``id -> InspectionRecord`` view of one collection snapshot.

    Built wholesale from a snapshot and never patched; consumers that need a
    newer state receive a new mirror.
    """

    __slots__ = ("_records",)

    def __init__(self, records: Iterable[InspectionRecord] = ()) -> None:
        self._records = MappingProxyType({record.id: record for record in records})

    def __getitem__(self, key: str) -> InspectionRecord:
        return self._records[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"CollectionMirror({list(self._records)!r})"

    def records(self) -> list[InspectionRecord]:
        return list(self._records.values())


class DashboardView(BaseModel):
    search_term: str = ""
    inspections: list[InspectionRecord] = Field(default_factory=list)
    total: int = 0
    critical_count: int = 0
    suggestions: list[str] = Field(default_factory=list)
    alert: Optional[str] = None
    model_config = ConfigDict(frozen=True)


class AccessDecision(BaseModel):
    destination: str
    granted: bool
    title: str
    message: Optional[str] = None


class SeedReport(BaseModel):
    """Outcome of one seeding attempt; partial seeding is reported, not raised."""

    skipped: bool = False
    already_populated: bool = False
    attempted: int = 0
    written: int = 0
    failed: list[str] = Field(default_factory=list)
    error: Optional[str] = None


class SessionOut(BaseModel):
    principal_id: Optional[str] = None
    degraded: bool = False
    ready: bool = False
    remote_sync: bool = False
    role: Optional[Role] = None
    dark_mode: Optional[bool] = None


class RoleUpdate(BaseModel):
    role: Role


class DarkModeUpdate(BaseModel):
    dark_mode: bool
