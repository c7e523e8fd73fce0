"""
Tests for the component lifecycle base class.
"""

import pytest

from activity_tracker.core.component import (
    Component,
    ComponentState,
    ComponentStateError,
    DependencyUnavailableError,
)
from activity_tracker.core.events import ComponentFailed, EventType


class Sample(Component):
    """Component whose hooks can be told to fail."""

    def __init__(self, bus, fail_init=False, fail_shutdown=False):
        super().__init__("Sample", event_bus=bus)
        self.fail_init = fail_init
        self.fail_shutdown = fail_shutdown
        self.init_calls = 0
        self.shutdown_calls = 0
        self.received = []

    async def _init(self):
        self.init_calls += 1
        self.subscribe("log:created", self._on_log)
        if self.fail_init:
            raise RuntimeError("cannot start")

    async def _shutdown(self):
        self.shutdown_calls += 1
        if self.fail_shutdown:
            raise RuntimeError("cannot stop")

    def _on_log(self, data):
        self.received.append(data)


# =============================================================================
# Init
# =============================================================================


class TestInit:
    @pytest.mark.asyncio
    async def test_successful_init(self, bus):
        events = []
        bus.subscribe(EventType.COMPONENT_INITIALIZED, events.append)
        component = Sample(bus)

        assert component.state == ComponentState.CREATED
        assert await component.init() is True

        assert component.state == ComponentState.READY
        assert component.initialized
        assert [e.name for e in events] == ["Sample"]

    @pytest.mark.asyncio
    async def test_init_twice_runs_hook_once(self, bus):
        component = Sample(bus)

        await component.init()
        assert await component.init() is True

        assert component.init_calls == 1

    @pytest.mark.asyncio
    async def test_failed_init_reraises_and_publishes(self, bus):
        errors = []
        bus.subscribe(EventType.COMPONENT_ERROR, errors.append)
        component = Sample(bus, fail_init=True)

        with pytest.raises(RuntimeError, match="cannot start"):
            await component.init()

        assert component.state == ComponentState.ERROR
        assert str(component.last_error) == "cannot start"
        assert len(errors) == 1
        assert isinstance(errors[0], ComponentFailed)
        assert errors[0].phase == "init"
        assert errors[0].to_dict()["error"] == "cannot start"

    @pytest.mark.asyncio
    async def test_failed_init_drops_subscriptions(self, bus):
        component = Sample(bus, fail_init=True)

        with pytest.raises(RuntimeError):
            await component.init()

        assert bus.subscriber_count("log:created") == 0

    @pytest.mark.asyncio
    async def test_error_state_is_absorbing(self, bus):
        component = Sample(bus, fail_init=True)
        with pytest.raises(RuntimeError):
            await component.init()

        component.fail_init = False
        with pytest.raises(ComponentStateError):
            await component.init()

        assert component.init_calls == 1


# =============================================================================
# Shutdown
# =============================================================================


class TestShutdown:
    @pytest.mark.asyncio
    async def test_shutdown_never_started(self, bus):
        component = Sample(bus)

        assert await component.shutdown() is True
        assert component.shutdown_calls == 0

    @pytest.mark.asyncio
    async def test_shutdown_drops_subscriptions(self, bus):
        component = Sample(bus)
        await component.init()

        bus.publish("log:created", 1)
        assert await component.shutdown() is True
        bus.publish("log:created", 2)

        assert component.state == ComponentState.STOPPED
        assert component.received == [1]

    @pytest.mark.asyncio
    async def test_failed_shutdown(self, bus):
        errors = []
        bus.subscribe(EventType.COMPONENT_ERROR, errors.append)
        component = Sample(bus, fail_shutdown=True)
        await component.init()

        assert await component.shutdown() is False

        assert component.state == ComponentState.ERROR
        assert [e.phase for e in errors] == ["shutdown"]
        assert bus.subscriber_count("log:created") == 0

    @pytest.mark.asyncio
    async def test_shutdown_twice(self, bus):
        component = Sample(bus)
        await component.init()

        assert await component.shutdown() is True
        assert await component.shutdown() is True
        assert component.shutdown_calls == 1


# =============================================================================
# Dependencies
# =============================================================================


class TestDependencies:
    def test_get_dependency_soft(self, bus):
        component = Sample(bus)
        assert component.get_dependency("Database") is None

    def test_require_dependency(self, bus):
        component = Sample(bus)
        with pytest.raises(DependencyUnavailableError, match="Database"):
            component.require_dependency("Database")

        database = object()
        component.set_dependency("Database", database)
        assert component.require_dependency("Database") is database

    def test_info(self, bus):
        component = Sample(bus)
        component.set_dependency("Database", object())

        info = component.get_info()

        assert info["name"] == "Sample"
        assert info["state"] == "created"
        assert info["dependencies"] == ["Database"]
