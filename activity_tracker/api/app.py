"""
FastAPI application for the activity tracker.

``create_app`` builds the HTTP layer for an orchestrator whose components
are already started. The app holds no global state: every route resolves
the components it needs from ``app.state.orchestrator``.
"""

from __future__ import annotations

import logging
import sqlite3

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from activity_tracker.api.routes import activities, auth, goals, rewards
from activity_tracker.config import Settings, get_settings
from activity_tracker.core.errors import (
    AuthenticationError,
    ConflictError,
    DomainError,
    NotFoundError,
    OwnershipError,
)
from activity_tracker.core.orchestrator import HealthStatus, Orchestrator

logger = logging.getLogger(__name__)


# Most specific first; the first matching class wins
ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (NotFoundError, 404),
    (OwnershipError, 403),
    (AuthenticationError, 401),
    (ConflictError, 409),
    (DomainError, 400),
]


def status_for(error: Exception) -> int:
    for error_class, status in ERROR_STATUS:
        if isinstance(error, error_class):
            return status
    return 500


def create_app(orchestrator: Orchestrator, settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application over the orchestrator's components."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Activity Tracker API",
        description="Log activities, set goals and earn achievements",
        version="0.1.0",
        debug=settings.debug,
    )
    app.state.orchestrator = orchestrator

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error handlers
    # =========================================================================

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        status = status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if status == 401 else None
        return JSONResponse(status_code=status, content={"detail": str(exc)}, headers=headers)

    @app.exception_handler(sqlite3.IntegrityError)
    async def integrity_error_handler(request: Request, exc: sqlite3.IntegrityError):
        logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=409, content={"detail": "Conflicts with existing data"})

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get("/health")
    async def health_check():
        health = orchestrator.get_health()
        status_code = 200 if health.status == HealthStatus.RUNNING else 503
        return JSONResponse(status_code=status_code, content=health.model_dump(mode="json"))

    # Routers
    app.include_router(auth.router)
    app.include_router(activities.router)
    app.include_router(goals.router)
    app.include_router(rewards.router)

    return app
