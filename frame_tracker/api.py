"""
FastAPI application for Frame Tracker.
"""

from __future__ import annotations

import importlib.metadata
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .analytics.routes import router as analytics_router
from .config import get_settings
from .db.base import init_database
from .exceptions import FrameTrackerError
from .kanban.routes import router as kanban_router
from .logging import configure_logging
from .procurement.routes import router as procurement_router
from .realtime.routes import router as realtime_router
from .routes import portal_router
from .routes import router as orders_router

logger = structlog.get_logger()

settings = get_settings()


def _version() -> str:
    try:
        return importlib.metadata.version("frame-tracker")
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    configure_logging(settings)
    logger.info("Starting Frame Tracker", environment=settings.environment)

    try:
        await init_database()
    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    logger.info("Shutting down Frame Tracker")


app = FastAPI(
    title=settings.app_name,
    description="Order tracking, kanban and workload analytics for a framing shop",
    version=_version(),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FrameTrackerError)
async def frame_tracker_error_handler(
    request: Request, exc: FrameTrackerError
) -> JSONResponse:
    """Render domain errors as ``{"error": {code, message, details}}``."""
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, code=exc.code)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


@app.get("/health", tags=["system"])
async def health() -> dict:
    """Basic health check endpoint."""
    return {"status": "ok"}


@app.get("/healthz", tags=["system"])
def healthz() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/version", tags=["system"])
def version() -> dict[str, str]:
    """Return the version of the application."""
    return {"version": _version()}


app.include_router(orders_router)
app.include_router(portal_router)
app.include_router(kanban_router)
app.include_router(analytics_router)
app.include_router(procurement_router)
app.include_router(realtime_router)
