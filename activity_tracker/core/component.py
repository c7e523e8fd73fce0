"""
Base class for all orchestrated components.

Components wrap one capability of the application (database access, goals,
notifications, the HTTP server, ...) behind a uniform two-phase lifecycle so
the orchestrator can start and stop them without knowing what they do.
"""

from __future__ import annotations

import logging
from abc import ABC
from enum import Enum
from typing import Any

from activity_tracker.core.events import (
    ComponentFailed,
    ComponentInitialized,
    EventBus,
    EventHandler,
    EventType,
    Subscription,
    get_event_bus,
)

logger = logging.getLogger(__name__)


class ComponentState(str, Enum):
    """Lifecycle state of a component."""

    CREATED = "created"  # Constructed, init() not yet called
    INITIALIZING = "initializing"
    READY = "ready"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"
    ERROR = "error"  # Absorbing: a failed component is never re-initialized


class ComponentStateError(Exception):
    """Raised when a lifecycle call is not allowed in the current state."""
    pass


class DependencyUnavailableError(Exception):
    """Raised by ``require_dependency`` when a named dependency was never set."""

    def __init__(self, component: str, dependency: str):
        self.component = component
        self.dependency = dependency
        super().__init__(f"{dependency} dependency not available to {component}")


class Component(ABC):
    """
    Base class for all components.

    Subclasses override the ``_init`` / ``_shutdown`` hooks and never
    override ``init`` / ``shutdown`` themselves.

    Example:
        class GoalComponent(Component):
            def __init__(self, event_bus=None):
                super().__init__("Goal", event_bus=event_bus)

            async def _init(self) -> None:
                self.db = self.require_dependency("Database")
                self.subscribe(EventType.LOG_CREATED, self._handle_log_created)
    """

    def __init__(
        self,
        name: str,
        options: dict[str, Any] | None = None,
        event_bus: EventBus | None = None,
    ):
        self.name = name
        self.options = options or {}
        self.event_bus = event_bus or get_event_bus()
        self.state = ComponentState.CREATED
        self.last_error: Exception | None = None
        self._dependencies: dict[str, Any] = {}
        self._subscriptions: list[Subscription] = []

    @property
    def initialized(self) -> bool:
        return self.state == ComponentState.READY

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def init(self) -> bool:
        """
        Initialize the component.

        Returns True on success. A failing ``_init`` moves the component to
        the error state, publishes ``component:error`` and re-raises.
        """
        if self.state == ComponentState.READY:
            return True
        if self.state == ComponentState.ERROR:
            raise ComponentStateError(
                f"Component '{self.name}' is in the error state and cannot be initialized"
            )

        self.state = ComponentState.INITIALIZING
        logger.debug(f"[{self.name}] Initializing component")

        try:
            await self._init()
        except Exception as e:
            self.state = ComponentState.ERROR
            self.last_error = e
            self._drop_subscriptions()
            logger.error(f"[{self.name}] Initialization error: {e}")
            self.publish(
                EventType.COMPONENT_ERROR,
                ComponentFailed(name=self.name, error=e, phase="init"),
            )
            raise

        self.state = ComponentState.READY
        self.publish(EventType.COMPONENT_INITIALIZED, ComponentInitialized(name=self.name))
        logger.debug(f"[{self.name}] Component initialized successfully")
        return True

    async def _init(self) -> None:
        """
        Component-specific initialization.

        Validate required dependencies here with ``require_dependency`` and
        register event handlers.
        """
        pass

    async def shutdown(self) -> bool:
        """
        Shut the component down.

        Returns True when the component is stopped (or was never started),
        False if ``_shutdown`` failed.
        """
        if self.state in (ComponentState.CREATED, ComponentState.STOPPED):
            return True
        if self.state == ComponentState.ERROR:
            self._drop_subscriptions()
            return False

        self.state = ComponentState.SHUTTING_DOWN
        logger.debug(f"[{self.name}] Shutting down component")

        try:
            await self._shutdown()
        except Exception as e:
            self.state = ComponentState.ERROR
            self.last_error = e
            logger.error(f"[{self.name}] Shutdown error: {e}")
            self.publish(
                EventType.COMPONENT_ERROR,
                ComponentFailed(name=self.name, error=e, phase="shutdown"),
            )
            return False
        finally:
            self._drop_subscriptions()

        self.state = ComponentState.STOPPED
        logger.debug(f"[{self.name}] Component shut down successfully")
        return True

    async def _shutdown(self) -> None:
        """Release resources. Override when the component holds any."""
        pass

    # =========================================================================
    # Dependencies
    # =========================================================================

    def set_dependency(self, name: str, instance: Any) -> None:
        self._dependencies[name] = instance

    def get_dependency(self, name: str) -> Any | None:
        """Soft lookup: returns None for names that were never set."""
        return self._dependencies.get(name)

    def require_dependency(self, name: str) -> Any:
        """Look up a dependency that this component cannot work without."""
        instance = self._dependencies.get(name)
        if instance is None:
            raise DependencyUnavailableError(self.name, name)
        return instance

    # =========================================================================
    # Events
    # =========================================================================

    def subscribe(self, event: EventType | str, callback: EventHandler) -> Subscription:
        """Subscribe on the shared bus; dropped automatically on shutdown."""
        subscription = self.event_bus.subscribe(event, callback, context=self)
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: EventType | str, data: Any = None) -> bool:
        return self.event_bus.publish(event, data)

    def _drop_subscriptions(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_info(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "initialized": self.initialized,
            "subscriptions": len(self._subscriptions),
            "dependencies": list(self._dependencies),
        }

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name}, state={self.state.value})>"
