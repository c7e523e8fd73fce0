"""
Application orchestrator.

The orchestrator is the single authority for startup and shutdown. It keeps
the registry of components and their named dependencies, works out a safe
initialization order, injects each dependency before its dependent starts,
and tracks aggregate health.

Startup is fail-fast: the first component that cannot start aborts the whole
sequence (already-started components are stopped again). Shutdown is
best-effort: a component that fails to stop is logged and the rest still
get their turn.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field

from activity_tracker.core.component import Component
from activity_tracker.core.events import (
    AppFailed,
    AppReady,
    AppShutdown,
    ComponentFailed,
    ComponentInitialized,
    EventBus,
    EventType,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Errors
# =============================================================================


class OrchestrationError(Exception):
    """Base class for wiring and startup errors. Always fatal to startup."""
    pass


class DuplicateComponentError(OrchestrationError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Component '{name}' is already registered")


class MissingDependencyError(OrchestrationError):
    def __init__(self, component: str, dependency: str):
        self.component = component
        self.dependency = dependency
        super().__init__(
            f"Component '{component}' depends on '{dependency}' which is not registered"
        )


class DependencyNotInitializedError(OrchestrationError):
    def __init__(self, component: str, dependency: str):
        self.component = component
        self.dependency = dependency
        super().__init__(
            f"Component '{component}' depends on '{dependency}' which is not initialized"
        )


class CyclicDependencyError(OrchestrationError):
    def __init__(self, cycle: list[str]):
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class ComponentInitError(OrchestrationError):
    def __init__(self, component: str, cause: BaseException):
        self.component = component
        self.cause = cause
        super().__init__(f"Component '{component}' failed to initialize: {cause}")


# =============================================================================
# Registry and health models
# =============================================================================


@dataclass
class ComponentRegistration:
    """A registered component and the names it depends on."""

    name: str
    instance: Component
    dependencies: tuple[str, ...] = ()
    initialized: bool = False


class HealthStatus(str, Enum):
    INITIALIZING = "initializing"
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    ERROR = "error"


class ErrorInfo(BaseModel):
    message: str
    phase: str
    timestamp: datetime = Field(default_factory=datetime.now)


class ComponentHealth(BaseModel):
    initialized: bool = False
    init_time: datetime | None = None
    error: ErrorInfo | None = None


class HealthRecord(BaseModel):
    """Aggregate health, owned and mutated only by the orchestrator."""

    status: HealthStatus = HealthStatus.INITIALIZING
    start_time: datetime | None = None
    stop_time: datetime | None = None
    last_checked: datetime | None = None
    last_error: ErrorInfo | None = None
    components: dict[str, ComponentHealth] = Field(default_factory=dict)


class HealthSnapshot(HealthRecord):
    """Read-only copy handed to callers of ``get_health``."""

    uptime: int = 0  # seconds


# =============================================================================
# Orchestrator
# =============================================================================


class Orchestrator(Component):
    """
    Registers components and drives their lifecycle in dependency order.

    Example:
        orchestrator = Orchestrator(event_bus=bus)
        orchestrator.register("Database", database)
        orchestrator.register("Activity", activity, ["Database"])
        orchestrator.register("Goal", goal, ["Database", "Activity"])
        await orchestrator.init()
    """

    def __init__(
        self,
        init_order: Iterable[str] | None = None,
        event_bus: EventBus | None = None,
        options: dict[str, Any] | None = None,
    ):
        super().__init__("Orchestrator", options=options, event_bus=event_bus)
        self._components: dict[str, ComponentRegistration] = {}
        self._explicit_order = bool(init_order)
        self._init_order: list[str] = list(dict.fromkeys(init_order or []))
        self._started: list[str] = []
        self.health = HealthRecord()

    # =========================================================================
    # Registration
    # =========================================================================

    def register(
        self,
        name: str,
        instance: Component,
        dependencies: Iterable[str] = (),
    ) -> Orchestrator:
        """
        Register a component under a unique name.

        Returns the orchestrator for chaining.
        """
        if name in self._components:
            raise DuplicateComponentError(name)

        self._components[name] = ComponentRegistration(
            name=name,
            instance=instance,
            dependencies=tuple(dict.fromkeys(dependencies)),
        )

        if name not in self._init_order:
            self._init_order.append(name)

        logger.debug(f"[Orchestrator] Registered component '{name}'")
        return self

    def get_component(self, name: str) -> Component | None:
        registration = self._components.get(name)
        return registration.instance if registration else None

    def get_registration(self, name: str) -> ComponentRegistration | None:
        return self._components.get(name)

    @property
    def component_names(self) -> list[str]:
        return list(self._components)

    @property
    def init_order(self) -> list[str]:
        """The order startup will walk."""
        if self._explicit_order:
            return list(self._init_order)
        return self._compute_init_order()

    @property
    def started(self) -> list[str]:
        """Components actually started, in start order."""
        return list(self._started)

    # =========================================================================
    # Startup
    # =========================================================================

    async def _init(self) -> None:
        self.health.start_time = datetime.now()
        self.health.stop_time = None
        self.health.status = HealthStatus.STARTING

        self.subscribe(EventType.COMPONENT_INITIALIZED, self._handle_component_initialized)
        self.subscribe(EventType.COMPONENT_ERROR, self._handle_component_error)

        try:
            order = list(self._init_order) if self._explicit_order else self._compute_init_order()
            for name in order:
                await self._start_component(name)
        except OrchestrationError as e:
            logger.error(f"[Orchestrator] Error initializing components: {e}")
            self.health.status = HealthStatus.ERROR
            self.health.last_error = ErrorInfo(message=str(e), phase="init")
            await self._teardown()
            raise

        self.health.status = HealthStatus.RUNNING
        logger.info(f"[Orchestrator] Started {len(self._started)} components: {', '.join(self._started)}")

        self.publish(EventType.APP_READY, AppReady(components=list(self._components)))

    async def _start_component(self, name: str) -> None:
        registration = self._components.get(name)
        if registration is None:
            logger.warning(f"[Orchestrator] Component '{name}' in init order but not registered, skipping")
            return
        if registration.initialized:
            return

        for dep_name in registration.dependencies:
            dependency = self._components.get(dep_name)
            if dependency is None:
                raise MissingDependencyError(name, dep_name)
            if not dependency.initialized:
                raise DependencyNotInitializedError(name, dep_name)
            registration.instance.set_dependency(dep_name, dependency.instance)

        try:
            await registration.instance.init()
        except Exception as e:
            entry = self.health.components.setdefault(name, ComponentHealth())
            entry.initialized = False
            entry.init_time = datetime.now()
            if entry.error is None:
                entry.error = ErrorInfo(message=str(e), phase="init")
            raise ComponentInitError(name, e) from e

        registration.initialized = True
        self._started.append(name)

        entry = self.health.components.setdefault(name, ComponentHealth())
        entry.initialized = True
        entry.init_time = datetime.now()

    def _compute_init_order(self) -> list[str]:
        """Depth-first post-order over the dependency graph, leaves first."""
        order: list[str] = []
        done: set[str] = set()
        path: list[str] = []

        def visit(name: str) -> None:
            if name in done:
                return
            if name in path:
                raise CyclicDependencyError(path[path.index(name):] + [name])

            registration = self._components.get(name)
            if registration is None:
                # Reported as a missing dependency when the dependent starts
                return

            path.append(name)
            for dep_name in registration.dependencies:
                visit(dep_name)
            path.pop()

            done.add(name)
            order.append(name)

        for name in self._init_order:
            visit(name)

        return order

    # =========================================================================
    # Shutdown
    # =========================================================================

    async def _shutdown(self) -> None:
        self.health.status = HealthStatus.SHUTTING_DOWN
        self.publish(EventType.APP_SHUTDOWN, AppShutdown(components=list(reversed(self._started))))

        await self._teardown()

        self.health.status = HealthStatus.STOPPED
        self.health.stop_time = datetime.now()
        logger.info("[Orchestrator] All components shut down")

    async def _teardown(self) -> None:
        """Stop started components in reverse start order, never aborting early."""
        for name in reversed(self._started):
            registration = self._components[name]
            if not registration.initialized:
                continue

            try:
                success = await registration.instance.shutdown()
            except Exception as e:
                logger.warning(f"[Orchestrator] Component '{name}' raised during shutdown: {e}")
                success = False

            registration.initialized = not success
            if name in self.health.components:
                self.health.components[name].initialized = not success

            if not success:
                logger.warning(f"[Orchestrator] Component '{name}' failed to shut down cleanly")

        self._started = [name for name in self._started if self._components[name].initialized]

    # =========================================================================
    # Health
    # =========================================================================

    def get_health(self) -> HealthSnapshot:
        """Snapshot of the application health."""
        now = datetime.now()
        self.health.last_checked = now

        uptime = 0
        if self.health.start_time:
            until = self.health.stop_time or now
            uptime = round((until - self.health.start_time).total_seconds())

        return HealthSnapshot.model_validate({**self.health.model_dump(), "uptime": uptime})

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_component_initialized(self, data: ComponentInitialized) -> None:
        logger.debug(f"[Orchestrator] Component '{data.name}' initialized")

    def _handle_component_error(self, data: ComponentFailed) -> None:
        logger.error(f"[Orchestrator] Component '{data.name}' error during {data.phase}: {data.error}")

        if data.name != self.name:
            entry = self.health.components.setdefault(data.name, ComponentHealth())
            entry.error = ErrorInfo(message=str(data.error), phase=data.phase, timestamp=data.timestamp)

        self.publish(
            EventType.APP_ERROR,
            AppFailed(component=data.name, error=data.error, phase=data.phase),
        )
