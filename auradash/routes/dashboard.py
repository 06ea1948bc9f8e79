from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from .. import access, schemas
from ..deps import get_ready_session, get_session
from ..derived import compute_view
from ..session import DashboardSession

router = APIRouter(prefix="/api", tags=["dashboard"])


class SearchUpdate(BaseModel):
    search_term: str = ""


@router.get("/session", response_model=schemas.SessionOut)
async def read_session(session: DashboardSession = Depends(get_session)):
    principal = session.principal
    current = session.settings.current
    return schemas.SessionOut(
        principal_id=principal.id if principal else None,
        degraded=principal.degraded if principal else False,
        ready=session.ready,
        remote_sync=session.remote_sync,
        role=current.role if current else None,
        dark_mode=current.dark_mode if current else None,
    )


@router.get("/dashboard", response_model=schemas.DashboardView)
async def read_dashboard(
    q: Optional[str] = None,
    session: DashboardSession = Depends(get_ready_session),
):
    if q is None:
        return session.view
    mirror = session.collection.mirror if session.collection else schemas.CollectionMirror()
    return compute_view(mirror, q)


@router.put("/dashboard/search", response_model=schemas.DashboardView)
async def update_search(
    payload: SearchUpdate,
    session: DashboardSession = Depends(get_ready_session),
):
    return session.set_search_term(payload.search_term)


@router.get("/navigation")
async def read_navigation(session: DashboardSession = Depends(get_ready_session)):
    return {
        "role": session.role,
        "destinations": [destination.value for destination in access.visible_destinations(session.role)],
    }


@router.get("/destinations/{destination}", response_model=schemas.AccessDecision)
async def open_destination(
    destination: access.Destination,
    session: DashboardSession = Depends(get_ready_session),
):
    access.require_privileged(session.role, destination)
    return access.resolve_destination(session.role, destination)


@router.get("/selection", response_model=Optional[schemas.InspectionRecord])
async def read_selection(session: DashboardSession = Depends(get_ready_session)):
    return session.selected


@router.post("/inspections/{inspection_id}/select", response_model=schemas.InspectionRecord)
async def select_inspection(
    inspection_id: str,
    session: DashboardSession = Depends(get_ready_session),
):
    mirror = session.collection.mirror if session.collection else schemas.CollectionMirror()
    record = mirror.get(inspection_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Inspection not found")
    session.select_inspection(record)
    return record


@router.delete("/selection")
async def clear_selection(session: DashboardSession = Depends(get_ready_session)):
    session.clear_selection()
    return {"status": "cleared"}
