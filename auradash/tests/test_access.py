import pytest

from auradash.access import (
    DENIAL_MESSAGE,
    DENIAL_TITLE,
    Destination,
    require_privileged,
    resolve_destination,
    visible_destinations,
)
from auradash.errors import AccessDenied
from auradash.schemas import Role


def test_manager_sees_every_destination():
    assert visible_destinations(Role.MANAGER) == list(Destination)


@pytest.mark.parametrize("role", [Role.TECHNICIAN, None])
def test_settings_entry_hidden_from_non_managers(role):
    assert Destination.SETTINGS not in visible_destinations(role)
    assert Destination.DASHBOARD in visible_destinations(role)


def test_destination_view_denies_technician_independently():
    decision = resolve_destination(Role.TECHNICIAN, "settings")
    assert decision.granted is False
    assert decision.title == DENIAL_TITLE
    assert decision.message == DENIAL_MESSAGE


def test_manager_is_granted_settings():
    decision = resolve_destination(Role.MANAGER, Destination.SETTINGS)
    assert decision.granted is True
    assert decision.title == "System Settings"


def test_require_privileged_raises_for_technician():
    with pytest.raises(AccessDenied) as info:
        require_privileged(Role.TECHNICIAN)
    assert info.value.destination == "settings"
    require_privileged(Role.MANAGER)


def test_unknown_destination_rejected():
    with pytest.raises(ValueError):
        resolve_destination(Role.MANAGER, "reports")
