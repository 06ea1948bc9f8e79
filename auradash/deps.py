from fastapi import Depends, HTTPException, Request

from .session import DashboardSession


def get_session(request: Request) -> DashboardSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=503, detail="Initializing System")
    return session


def get_ready_session(session: DashboardSession = Depends(get_session)) -> DashboardSession:
    # purpose: hold every view behind the loading state until identity and settings resolve
    if not session.ready:
        raise HTTPException(status_code=503, detail="Initializing System")
    return session
