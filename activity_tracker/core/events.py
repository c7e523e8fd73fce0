"""
Event system for the activity tracker.

The event bus is the nervous system of the application. Components publish
events when domain state changes and subscribe to the events they care
about, so producers never need to know who is listening.

Dispatch is synchronous and in-process: ``publish`` calls every current
subscriber in subscription order before it returns. Subscribers that need
to do slow or asynchronous work must schedule it themselves.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MethodType
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Any]


# =============================================================================
# Event kinds
# =============================================================================


class EventType(str, Enum):
    """Every event name components are allowed to exchange."""

    # Lifecycle
    COMPONENT_INITIALIZED = "component:initialized"
    COMPONENT_ERROR = "component:error"
    APP_READY = "app:ready"
    APP_ERROR = "app:error"
    APP_SHUTDOWN = "app:shutdown"

    # Users
    USER_CREATED = "user:created"
    USER_UPDATED = "user:updated"
    USER_DELETED = "user:deleted"
    USER_LOGIN = "user:login"
    USER_LOGOUT = "user:logout"
    USER_PASSWORD_CHANGED = "user:password_changed"
    USER_PASSWORD_RESET_REQUESTED = "user:password_reset_requested"
    USER_PASSWORD_RESET = "user:password_reset"

    # Activities and logs
    ACTIVITY_CREATED = "activity:created"
    ACTIVITY_UPDATED = "activity:updated"
    ACTIVITY_DELETED = "activity:deleted"
    LOG_CREATED = "log:created"
    LOG_UPDATED = "log:updated"
    LOG_DELETED = "log:deleted"

    # Goals
    GOAL_CREATED = "goal:created"
    GOAL_UPDATED = "goal:updated"
    GOAL_DELETED = "goal:deleted"
    GOAL_ACHIEVED = "goal:achieved"

    # Rewards
    ACHIEVEMENT_EARNED = "achievement:earned"
    NOTIFICATION_CREATED = "notification:created"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Payloads
# =============================================================================


class EventPayload(BaseModel):
    """
    Base class for event payloads.

    Attributes are snake_case in Python; the serialized (alias) names are the
    camelCase field names external subscribers rely on.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    timestamp: datetime = Field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the public camelCase names."""
        return self.model_dump(mode="json", by_alias=True)


class ComponentInitialized(EventPayload):
    name: str


class ComponentFailed(EventPayload):
    name: str
    error: Exception
    phase: str

    @field_serializer("error")
    def _serialize_error(self, error: Exception) -> str:
        return str(error)


class AppReady(EventPayload):
    components: list[str] = Field(default_factory=list)


class AppFailed(EventPayload):
    component: str
    error: Exception
    phase: str

    @field_serializer("error")
    def _serialize_error(self, error: Exception) -> str:
        return str(error)


class AppShutdown(EventPayload):
    components: list[str] = Field(default_factory=list)


class UserEvent(EventPayload):
    user_id: int
    username: str | None = None
    email: str | None = None


class ActivityEvent(EventPayload):
    activity_id: int
    user_id: int
    name: str | None = None


class LogEvent(EventPayload):
    log_id: int
    user_id: int
    activity_id: int
    count: float | None = None


class GoalEvent(EventPayload):
    goal_id: int
    user_id: int
    activity_id: int | None = None


class GoalAchieved(EventPayload):
    user_id: int
    goal_id: int
    goal_name: str
    goal_target: float
    goal_unit: str
    goal_period: str


class AchievementEarned(EventPayload):
    user_id: int
    achievement_id: int
    achievement_name: str
    achievement_description: str = ""
    earned_date: datetime | None = None
    custom_message: str | None = None


class NotificationCreated(EventPayload):
    notification_id: int | None = None
    user_id: int
    title: str
    message: str
    notification_type: str = Field(default="info", alias="type")


# Which payload model each event kind carries
EVENT_PAYLOADS: dict[EventType, type[EventPayload]] = {
    EventType.COMPONENT_INITIALIZED: ComponentInitialized,
    EventType.COMPONENT_ERROR: ComponentFailed,
    EventType.APP_READY: AppReady,
    EventType.APP_ERROR: AppFailed,
    EventType.APP_SHUTDOWN: AppShutdown,
    EventType.USER_CREATED: UserEvent,
    EventType.USER_UPDATED: UserEvent,
    EventType.USER_DELETED: UserEvent,
    EventType.USER_LOGIN: UserEvent,
    EventType.USER_LOGOUT: UserEvent,
    EventType.USER_PASSWORD_CHANGED: UserEvent,
    EventType.USER_PASSWORD_RESET_REQUESTED: UserEvent,
    EventType.USER_PASSWORD_RESET: UserEvent,
    EventType.ACTIVITY_CREATED: ActivityEvent,
    EventType.ACTIVITY_UPDATED: ActivityEvent,
    EventType.ACTIVITY_DELETED: ActivityEvent,
    EventType.LOG_CREATED: LogEvent,
    EventType.LOG_UPDATED: LogEvent,
    EventType.LOG_DELETED: LogEvent,
    EventType.GOAL_CREATED: GoalEvent,
    EventType.GOAL_UPDATED: GoalEvent,
    EventType.GOAL_DELETED: GoalEvent,
    EventType.GOAL_ACHIEVED: GoalAchieved,
    EventType.ACHIEVEMENT_EARNED: AchievementEarned,
    EventType.NOTIFICATION_CREATED: NotificationCreated,
}


def _event_name(event: EventType | str) -> str:
    name = event.value if isinstance(event, EventType) else event
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Event name must be a non-empty string")
    return name


# =============================================================================
# Subscriptions
# =============================================================================


@dataclass(eq=False)
class Subscription:
    """
    A single registration of a callback for an event.

    Returned by ``EventBus.subscribe``; ``unsubscribe()`` removes exactly
    this registration and is safe to call more than once.
    """

    event: str
    callback: EventHandler
    context: Any = None
    _bus: EventBus | None = field(default=None, repr=False)

    @property
    def active(self) -> bool:
        return self._bus is not None

    def unsubscribe(self) -> None:
        """Remove this registration from its bus."""
        if self._bus is None:
            return
        bus, self._bus = self._bus, None
        bus._remove(self)

    def invoke(self, data: Any) -> Any:
        callback = self.callback
        if self.context is not None and not isinstance(callback, MethodType):
            callback = MethodType(callback, self.context)
        return callback(data)


# =============================================================================
# Bus
# =============================================================================


class EventBus:
    """
    In-memory publish/subscribe registry.

    Not designed for multi-threaded access: the subscription lists are
    shared mutable state guarded only by single-threaded execution.
    """

    def __init__(self, debug: bool = False):
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)
        self.debug = debug

    def subscribe(
        self,
        event: EventType | str,
        callback: EventHandler,
        context: Any = None,
    ) -> Subscription:
        """
        Subscribe to an event.

        Args:
            event: Event name, colon-namespaced by convention ("log:created")
            callback: Called with the event data
            context: Optional owner; plain functions are bound to it

        Returns:
            The subscription handle (use ``unsubscribe()`` to remove it)
        """
        name = _event_name(event)
        subscription = Subscription(event=name, callback=callback, context=context, _bus=self)
        self._subscriptions[name].append(subscription)

        if self.debug:
            logger.debug(f"Subscribed to '{name}'")

        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.event)
        if not subscriptions:
            return
        remaining = [s for s in subscriptions if s is not subscription]
        if remaining:
            self._subscriptions[subscription.event] = remaining
        else:
            del self._subscriptions[subscription.event]

        if self.debug:
            logger.debug(f"Unsubscribed from '{subscription.event}'")

    def publish(self, event: EventType | str, data: Any = None) -> bool:
        """
        Publish an event to every current subscriber.

        Returns:
            False if nobody was subscribed, True otherwise
        """
        name = _event_name(event)
        subscriptions = tuple(self._subscriptions.get(name, ()))

        if not subscriptions:
            if self.debug:
                logger.debug(f"No subscribers for '{name}'")
            return False

        if self.debug:
            logger.debug(f"Publishing '{name}' to {len(subscriptions)} subscriber(s)")
            self._check_payload(name, data)

        for subscription in subscriptions:
            try:
                subscription.invoke(data)
            except Exception:
                # Log error but don't stop other handlers
                logger.exception(f"Error in event handler for '{name}'")

        return True

    def clear(self, event: EventType | str | None = None) -> None:
        """Remove all subscriptions, or only those of one event."""
        if event is None:
            doomed = [s for subs in self._subscriptions.values() for s in subs]
            self._subscriptions.clear()
        else:
            doomed = self._subscriptions.pop(_event_name(event), [])

        for subscription in doomed:
            subscription._bus = None

        if self.debug:
            logger.debug(f"Cleared subscriptions ({len(doomed)} removed)")

    def set_debug(self, enabled: bool) -> None:
        self.debug = enabled

    def subscriber_count(self, event: EventType | str) -> int:
        return len(self._subscriptions.get(_event_name(event), ()))

    def get_stats(self) -> dict[str, int]:
        """Registered events and their subscriber counts."""
        return {name: len(subs) for name, subs in self._subscriptions.items() if subs}

    def _check_payload(self, name: str, data: Any) -> None:
        try:
            expected = EVENT_PAYLOADS[EventType(name)]
        except (ValueError, KeyError):
            return
        if data is not None and not isinstance(data, expected):
            logger.warning(
                f"Event '{name}' published with {type(data).__name__}, "
                f"expected {expected.__name__}"
            )


# Singleton event bus for the application
_default_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the default event bus instance."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def reset_event_bus() -> None:
    """Reset the default event bus (useful for testing)."""
    global _default_bus
    if _default_bus is not None:
        _default_bus.clear()
    _default_bus = None
