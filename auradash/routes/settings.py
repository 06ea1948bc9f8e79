from fastapi import APIRouter, Depends

from .. import access, schemas
from ..deps import get_ready_session
from ..session import DashboardSession

router = APIRouter(prefix="/api/settings", tags=["settings"])


@router.get("")
async def read_settings(session: DashboardSession = Depends(get_ready_session)):
    access.require_privileged(session.role, access.Destination.SETTINGS)
    current = session.settings.current
    principal = session.principal
    return {
        "principal_id": principal.id,
        "role": current.role,
        "dark_mode": current.dark_mode,
        "last_updated": current.last_updated,
    }


@router.put("/role", response_model=schemas.SessionOut)
async def update_role(
    payload: schemas.RoleUpdate,
    session: DashboardSession = Depends(get_ready_session),
):
    access.require_privileged(session.role, access.Destination.SETTINGS)
    record = session.set_role(payload.role)
    return _session_out(session, record)


@router.put("/dark-mode", response_model=schemas.SessionOut)
async def update_dark_mode(
    payload: schemas.DarkModeUpdate,
    session: DashboardSession = Depends(get_ready_session),
):
    record = session.set_dark_mode(payload.dark_mode)
    return _session_out(session, record)


def _session_out(session: DashboardSession, record: schemas.SettingsRecord) -> schemas.SessionOut:
    principal = session.principal
    return schemas.SessionOut(
        principal_id=principal.id,
        degraded=principal.degraded,
        ready=session.ready,
        remote_sync=session.remote_sync,
        role=record.role,
        dark_mode=record.dark_mode,
    )
