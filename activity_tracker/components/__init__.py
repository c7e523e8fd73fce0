"""
Domain components.

Each wraps one capability of the application and is started by the
orchestrator after its dependencies.
"""

from activity_tracker.components.database import Database, DatabaseNotConnectedError, QueryResult
from activity_tracker.components.auth import AuthComponent
from activity_tracker.components.activity import ActivityComponent
from activity_tracker.components.goal import GoalComponent
from activity_tracker.components.achievement import AchievementComponent
from activity_tracker.components.notification import NotificationComponent

__all__ = [
    "Database",
    "DatabaseNotConnectedError",
    "QueryResult",
    "AuthComponent",
    "ActivityComponent",
    "GoalComponent",
    "AchievementComponent",
    "NotificationComponent",
]
