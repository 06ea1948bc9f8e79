"""Dashboard values derived from the inspection mirror and a search term."""

# purpose: recompute the filtered list, critical count and search suggestions in full
# inputs: CollectionMirror snapshot and the current search term
# outputs: DashboardView values published only when complete
# status: pilot

from __future__ import annotations

from typing import Optional

from .schemas import CollectionMirror, DashboardView, InspectionRecord
from .streams import StateChannel, Stream

SUGGESTION_MIN_LENGTH = 3
SUGGESTION_LIMIT = 3


def filter_inspections(mirror: CollectionMirror, search_term: str) -> list[InspectionRecord]:
    records = mirror.records()
    if not search_term:
        return records
    needle = search_term.lower()
    return [
        record
        for record in records
        if needle in record.title.lower()
        or needle in record.location.lower()
        or needle in record.category.lower()
    ]


def critical_count(mirror: CollectionMirror) -> int:
    return sum(1 for record in mirror.values() if record.critical)


def suggest_tokens(mirror: CollectionMirror, search_term: str) -> list[str]:
    """Return up to three title/category words starting with the search term."""

    if len(search_term) < SUGGESTION_MIN_LENGTH:
        return []
    prefix = search_term.lower()
    seen: dict[str, None] = {}
    for record in mirror.values():
        for token in record.title.split() + record.category.split():
            seen.setdefault(token, None)
    matches = [token for token in seen if token.lower().startswith(prefix)]
    return matches[:SUGGESTION_LIMIT]


def alert_banner(count: int) -> Optional[str]:
    if count <= 0:
        return None
    if count == 1:
        return "1 CRITICAL ISSUE REQUIRES ATTENTION"
    return f"{count} CRITICAL ISSUES REQUIRE ATTENTION"


def compute_view(mirror: CollectionMirror, search_term: str = "") -> DashboardView:
    inspections = filter_inspections(mirror, search_term)
    count = critical_count(mirror)
    return DashboardView(
        search_term=search_term,
        inspections=inspections,
        total=len(inspections),
        critical_count=count,
        suggestions=suggest_tokens(mirror, search_term),
        alert=alert_banner(count),
    )


class DashboardViewModel:
    """Holds the latest mirror and search term and publishes whole views."""

    def __init__(self, mirror: Optional[CollectionMirror] = None, search_term: str = "") -> None:
        self._mirror = mirror if mirror is not None else CollectionMirror()
        self._search_term = search_term
        self._channel: StateChannel[DashboardView] = StateChannel()
        self._channel.publish(compute_view(self._mirror, self._search_term))

    @property
    def view(self) -> DashboardView:
        return self._channel.value

    @property
    def search_term(self) -> str:
        return self._search_term

    def apply_mirror(self, mirror: CollectionMirror) -> DashboardView:
        self._mirror = mirror
        return self._recompute()

    def set_search_term(self, search_term: str) -> DashboardView:
        self._search_term = search_term
        return self._recompute()

    def choose_suggestion(self, token: str) -> DashboardView:
        return self.set_search_term(token)

    def watch(self) -> Stream[DashboardView]:
        return self._channel.watch()

    def close(self) -> None:
        self._channel.close()

    def _recompute(self) -> DashboardView:
        view = compute_view(self._mirror, self._search_term)
        self._channel.publish(view)
        return view
