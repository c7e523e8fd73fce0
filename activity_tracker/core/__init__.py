"""
Core module - orchestration infrastructure and shared data models.

This module contains:
- events: Event bus for pub/sub communication between components
- component: Lifecycle base class for every component
- orchestrator: Dependency-ordered startup, shutdown and health
- periods: Goal period windows
- models: Data models returned by components
- errors: Domain errors
- utils: Shared utility functions
"""

from activity_tracker.core.events import (
    EventBus,
    EventPayload,
    EventType,
    Subscription,
    get_event_bus,
    reset_event_bus,
)

from activity_tracker.core.component import (
    Component,
    ComponentState,
    ComponentStateError,
    DependencyUnavailableError,
)

from activity_tracker.core.orchestrator import (
    ComponentInitError,
    CyclicDependencyError,
    DependencyNotInitializedError,
    DuplicateComponentError,
    HealthSnapshot,
    HealthStatus,
    MissingDependencyError,
    OrchestrationError,
    Orchestrator,
)

from activity_tracker.core.periods import (
    PeriodType,
    PeriodWindow,
    resolve_period_window,
)

from activity_tracker.core.errors import (
    AuthenticationError,
    ConflictError,
    DomainError,
    InvalidGoalError,
    NotFoundError,
    OwnershipError,
)

from activity_tracker.core.utils import (
    generate_id,
    local_now,
    utc_now,
)

__all__ = [
    # Events
    "EventBus",
    "EventPayload",
    "EventType",
    "Subscription",
    "get_event_bus",
    "reset_event_bus",
    # Components
    "Component",
    "ComponentState",
    "ComponentStateError",
    "DependencyUnavailableError",
    # Orchestration
    "Orchestrator",
    "OrchestrationError",
    "ComponentInitError",
    "CyclicDependencyError",
    "DependencyNotInitializedError",
    "DuplicateComponentError",
    "MissingDependencyError",
    "HealthSnapshot",
    "HealthStatus",
    # Periods
    "PeriodType",
    "PeriodWindow",
    "resolve_period_window",
    # Errors
    "DomainError",
    "NotFoundError",
    "OwnershipError",
    "ConflictError",
    "AuthenticationError",
    "InvalidGoalError",
    # Utils
    "generate_id",
    "local_now",
    "utc_now",
]
