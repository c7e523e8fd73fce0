"""
Shared fixtures.

Every test gets its own event bus and an in-memory sqlite database, and a
fixed clock so period windows are deterministic. The default "now" is
Wednesday 2026-10-14 12:00; its week runs Sunday 2026-10-11 to Saturday
2026-10-17.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from activity_tracker.api.app import create_app
from activity_tracker.components import (
    AchievementComponent,
    ActivityComponent,
    AuthComponent,
    Database,
    GoalComponent,
    NotificationComponent,
)
from activity_tracker.config import Settings
from activity_tracker.core.events import EventBus, EventType
from activity_tracker.core.orchestrator import Orchestrator

WEDNESDAY_NOON = datetime(2026, 10, 14, 12, 0, 0)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = WEDNESDAY_NOON):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class EventRecorder:
    """Collects every payload published for the given events."""

    def __init__(self, bus: EventBus, *events: EventType):
        self.events: list[tuple[str, object]] = []
        for event in events:
            bus.subscribe(event, self._recorder(event))

    def _recorder(self, event: EventType):
        def record(data):
            self.events.append((event.value, data))
        return record

    def of(self, event: EventType) -> list:
        return [data for name, data in self.events if name == event.value]


@dataclass
class App:
    """A started orchestrator and direct handles to its components."""

    orchestrator: Orchestrator
    bus: EventBus
    clock: FixedClock
    db: Database
    auth: AuthComponent
    activity: ActivityComponent
    goal: GoalComponent
    achievement: AchievementComponent
    notification: NotificationComponent


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_path=":memory:",
        database_max_retries=0,
        database_retry_delay=0,
        jwt_secret_key="test-secret-key-that-is-long-enough-for-hs256",
        activity_cache_ttl=60,
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def clock():
    return FixedClock()


def build_app(settings: Settings, bus: EventBus, clock: FixedClock) -> App:
    db = Database(settings, event_bus=bus)
    auth = AuthComponent(settings, event_bus=bus)
    activity = ActivityComponent(settings, event_bus=bus, clock=clock)
    goal = GoalComponent(settings, event_bus=bus, clock=clock)
    achievement = AchievementComponent(settings, event_bus=bus, clock=clock)
    notification = NotificationComponent(settings, event_bus=bus, clock=clock)

    orchestrator = Orchestrator(event_bus=bus)
    orchestrator.register("Database", db)
    orchestrator.register("Auth", auth, ["Database"])
    orchestrator.register("Activity", activity, ["Database"])
    orchestrator.register("Achievement", achievement, ["Database"])
    orchestrator.register("Notification", notification, ["Database"])
    orchestrator.register("Goal", goal, ["Database", "Activity"])

    return App(
        orchestrator=orchestrator,
        bus=bus,
        clock=clock,
        db=db,
        auth=auth,
        activity=activity,
        goal=goal,
        achievement=achievement,
        notification=notification,
    )


@pytest_asyncio.fixture
async def app(settings, bus, clock):
    """Every domain component, started."""
    application = build_app(settings, bus, clock)
    await application.orchestrator.init()
    yield application
    await application.orchestrator.shutdown()


@pytest.fixture
def user_id(app):
    return app.auth.register_user("alice", "alice@example.com", "password123").id


@pytest.fixture
def other_user_id(app):
    return app.auth.register_user("bob", "bob@example.com", "password456").id


@pytest.fixture
def pushups(app, user_id):
    return app.activity.create_activity(user_id, "Push-ups", "reps")


@pytest.fixture
def record(bus):
    """Factory: ``record(EventType.X, ...)`` returns an EventRecorder on the test bus."""

    def start(*events: EventType) -> EventRecorder:
        return EventRecorder(bus, *events)

    return start


@pytest.fixture
def started_app(settings, bus, clock):
    """Every domain component, started outside any running event loop."""
    application = build_app(settings, bus, clock)
    asyncio.run(application.orchestrator.init())
    yield application
    asyncio.run(application.orchestrator.shutdown())


@pytest.fixture
def api(started_app, settings):
    """FastAPI TestClient over the started components."""
    with TestClient(create_app(started_app.orchestrator, settings)) as client:
        yield client


@pytest.fixture
def auth_headers(api):
    """Register alice over HTTP and return her bearer header."""
    response = api.post(
        "/api/auth/register",
        json={"username": "alice", "email": "alice@example.com", "password": "password123"},
    )
    assert response.status_code == 201
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}
