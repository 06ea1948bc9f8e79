import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable

import sentry_sdk
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .access import DENIAL_TITLE
from .config import configure_logging
from .errors import AccessDenied
from .metrics import REQUEST_COUNT, REQUEST_LATENCY
from .routes import dashboard, settings
from .session import DashboardSession, SyncContext, build_context

_logger = logging.getLogger(__name__)


def create_app(context_factory: Callable[[], SyncContext] = build_context) -> FastAPI:
    """Build the local view API around one DashboardSession.

    The session starts in the background so a bootstrap that never resolves
    leaves every view in the 503 "Initializing System" state instead of
    blocking startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = context_factory()
        configure_logging(context.config.log_level)
        if context.config.sentry_dsn:
            sentry_sdk.init(dsn=context.config.sentry_dsn, integrations=[FastApiIntegration()])
        session = DashboardSession(context)
        app.state.session = session
        start_task = asyncio.create_task(session.start())
        try:
            yield
        finally:
            if not start_task.done():
                start_task.cancel()
            (outcome,) = await asyncio.gather(start_task, return_exceptions=True)
            if isinstance(outcome, Exception):
                _logger.error("Session start failed", exc_info=outcome)
            await session.close()
            app.state.session = None

    app = FastAPI(title="Aura Dashboard Client", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(AccessDenied)
    async def access_denied_handler(request: Request, exc: AccessDenied):
        return JSONResponse(
            status_code=403,
            content={"detail": exc.message, "title": DENIAL_TITLE, "destination": exc.destination},
        )

    @app.middleware("http")
    async def record_metrics(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        endpoint = request.url.path
        REQUEST_COUNT.labels(request.method, endpoint).inc()
        REQUEST_LATENCY.labels(endpoint).observe(time.time() - start)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(dashboard.router)
    app.include_router(settings.router)
    return app


app = create_app()
