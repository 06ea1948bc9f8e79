from __future__ import annotations

from enum import Enum
from typing import Optional

from .errors import AccessDenied
from .schemas import AccessDecision, Role

# purpose: centralize the role gate used by navigation entries and destination views
# status: pilot


class Destination(str, Enum):
    DASHBOARD = "dashboard"
    MAP = "map"
    TEAMS = "teams"
    SETTINGS = "settings"


_DESTINATION_TITLES: dict[Destination, str] = {
    Destination.DASHBOARD: "Active Inspections",
    Destination.MAP: "Map View",
    Destination.TEAMS: "Teams",
    Destination.SETTINGS: "System Settings",
}

_PRIVILEGED_DESTINATIONS = frozenset({Destination.SETTINGS})

DENIAL_TITLE = "Access Denied"
DENIAL_MESSAGE = "You must be a Manager to access system configuration settings."


def is_privileged(role: Optional[Role]) -> bool:
    return role is Role.MANAGER


def _allowed(role: Optional[Role], destination: Destination) -> bool:
    return destination not in _PRIVILEGED_DESTINATIONS or is_privileged(role)


def visible_destinations(role: Optional[Role]) -> list[Destination]:
    """Navigation entries offered to ``role``; privileged entries are hidden."""

    return [destination for destination in Destination if _allowed(role, destination)]


def resolve_destination(role: Optional[Role], destination: Destination | str) -> AccessDecision:
    """Decide what the destination view renders, independent of navigation."""

    destination = Destination(destination)
    if _allowed(role, destination):
        return AccessDecision(
            destination=destination.value,
            granted=True,
            title=_DESTINATION_TITLES[destination],
        )
    return AccessDecision(
        destination=destination.value,
        granted=False,
        title=DENIAL_TITLE,
        message=DENIAL_MESSAGE,
    )


def require_privileged(role: Optional[Role], destination: Destination | str = Destination.SETTINGS) -> None:
    decision = resolve_destination(role, destination)
    if not decision.granted:
        raise AccessDenied(decision.destination, decision.message or DENIAL_TITLE)
