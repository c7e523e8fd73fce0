"""
HTTP server component.

The API is an ordinary component: it depends on the domain components it
exposes, so the orchestrator starts it last and stops it first.
"""

from __future__ import annotations

import logging

import uvicorn
from fastapi import FastAPI

from activity_tracker.api.app import create_app
from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.events import EventBus
from activity_tracker.core.orchestrator import Orchestrator

logger = logging.getLogger(__name__)

API_DEPENDENCIES = ("Auth", "Activity", "Goal", "Achievement", "Notification")


class ApiComponent(Component):
    """Builds the FastAPI app on init and serves it with uvicorn."""

    def __init__(
        self,
        orchestrator: Orchestrator,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
    ):
        super().__init__("Api", event_bus=event_bus)
        self.orchestrator = orchestrator
        self.settings = settings or get_settings()
        self.app: FastAPI | None = None
        self.server: uvicorn.Server | None = None

    async def _init(self) -> None:
        for name in API_DEPENDENCIES:
            self.require_dependency(name)

        self.app = create_app(self.orchestrator, self.settings)
        logger.info(f"[Api] Application built ({len(self.app.routes)} routes)")

    async def serve(self) -> None:
        """Serve until the server is asked to exit."""
        if self.app is None:
            raise RuntimeError("Api component is not initialized")

        config = uvicorn.Config(
            self.app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level=self.settings.log_level.lower(),
        )
        self.server = uvicorn.Server(config)
        logger.info(f"[Api] Listening on {self.settings.api_host}:{self.settings.api_port}")
        await self.server.serve()

    async def _shutdown(self) -> None:
        if self.server is not None:
            self.server.should_exit = True
        self.server = None
        self.app = None
