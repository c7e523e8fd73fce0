"""
Activity Tracker - Main entry point.

Builds the orchestrator with every component, starts them in dependency
order, serves the API and shuts everything down again on exit.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from activity_tracker.api.server import API_DEPENDENCIES, ApiComponent
from activity_tracker.components import (
    AchievementComponent,
    ActivityComponent,
    AuthComponent,
    Database,
    GoalComponent,
    NotificationComponent,
)
from activity_tracker.config import Settings, get_settings
from activity_tracker.core.events import EventBus
from activity_tracker.core.orchestrator import OrchestrationError, Orchestrator

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def build_orchestrator(settings: Settings, event_bus: EventBus | None = None) -> Orchestrator:
    """Register every component with its named dependencies."""
    event_bus = event_bus or EventBus(debug=settings.debug)
    orchestrator = Orchestrator(event_bus=event_bus)

    orchestrator.register("Database", Database(settings, event_bus=event_bus))
    orchestrator.register("Auth", AuthComponent(settings, event_bus=event_bus), ["Database"])
    orchestrator.register("Activity", ActivityComponent(settings, event_bus=event_bus), ["Database"])
    orchestrator.register("Achievement", AchievementComponent(settings, event_bus=event_bus), ["Database"])
    orchestrator.register("Notification", NotificationComponent(settings, event_bus=event_bus), ["Database"])
    orchestrator.register("Goal", GoalComponent(settings, event_bus=event_bus), ["Database", "Activity"])
    orchestrator.register(
        "Api",
        ApiComponent(orchestrator, settings, event_bus=event_bus),
        list(API_DEPENDENCIES),
    )

    return orchestrator


async def run(settings: Settings | None = None) -> int:
    """
    Start the application and serve until interrupted.

    Returns the process exit code.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    orchestrator = build_orchestrator(settings)
    try:
        await orchestrator.init()
    except OrchestrationError as e:
        logger.error(f"Failed to start application: {e}")
        return 1

    logger.info(f"Activity tracker started in {settings.environment} mode")
    try:
        await orchestrator.get_component("Api").serve()
    finally:
        await orchestrator.shutdown()

    return 0


def main():
    """Main entry point."""
    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    main()
