from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from plansync.api.routes import router as api_router
from plansync.config.settings import Settings, get_settings
from plansync.engine.poller import SolutionPoller
from plansync.engine.synchronizer import SessionSynchronizer
from plansync.models.errors import (
    InvalidState,
    ServerError,
    SessionNotFound,
    SyncError,
    TransportFailure,
    TransportTimeout,
)
from plansync.transport.client import SolverTransport
from plansync.utils.logging_config import setup_logging


logger = logging.getLogger(__name__)


def error_status(exc: SyncError) -> int:
    if isinstance(exc, SessionNotFound):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, InvalidState):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, TransportTimeout):
        return status.HTTP_504_GATEWAY_TIMEOUT
    if isinstance(exc, TransportFailure):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    if isinstance(exc, ServerError):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def sync_error_handler(request: Request, exc: SyncError):
    """Map synchronization errors to HTTP responses for the browser"""
    content = {
        "detail": exc.detail,
        "error_code": exc.kind.value.upper(),
        "path": str(request.url),
    }
    ignorable = getattr(exc, "ignorable", None)
    if ignorable is not None:
        content["ignorable"] = ignorable
    return JSONResponse(status_code=error_status(exc), content=content)


def create_app(settings: Optional[Settings] = None,
               synchronizer: Optional[SessionSynchronizer] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name}...")
        transport = None
        if getattr(app.state, "synchronizer", None) is None:
            transport = SolverTransport(settings.solver_url, timeout=settings.request_timeout_seconds)
            app.state.synchronizer = SessionSynchronizer(transport)
            logger.info(f"Solver URL: {settings.solver_url}")
        poller = None
        if settings.auto_refresh:
            poller = SolutionPoller(app.state.synchronizer, settings.poll_interval_seconds)
            poller.start()
        yield
        logger.info(f"Shutting down {settings.app_name}...")
        if poller:
            await poller.stop()
        if transport:
            await transport.aclose()

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        description="Browser-facing client for a remote, continuously running task-assigning solver",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.synchronizer = synchronizer

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(SyncError, sync_error_handler)
    app.include_router(api_router, prefix="/api/v1", tags=["sessions"])

    @app.get("/health", tags=["health"])
    def health_check():
        """Health check endpoint for monitoring and load balancers."""
        return {"status": "ok", "app": settings.app_name, "version": "1.0.0"}

    return app


setup_logging()
app = create_app()
