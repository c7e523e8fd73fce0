"""
Core data models for the activity tracker.

These are the shapes components hand back to route handlers. Python
attributes are snake_case; JSON output uses the camelCase aliases.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from activity_tracker.core.utils import from_db_date, from_db_timestamp
from activity_tracker.core.periods import PeriodType


class ApiModel(BaseModel):
    """Base for models that are serialized to clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# Users
# =============================================================================


class User(ApiModel):
    """A registered user (never carries the password hash)."""

    id: int
    username: str
    email: str
    created_at: datetime
    last_login: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> User:
        return cls(
            id=row["user_id"],
            username=row["username"],
            email=row["email"],
            created_at=from_db_timestamp(row["created_at"]),
            last_login=from_db_timestamp(row.get("last_login")),
        )


# =============================================================================
# Activities
# =============================================================================


class Activity(ApiModel):
    """A countable activity type (push-ups, minutes of reading, ...)."""

    id: int
    user_id: int
    name: str
    unit: str
    is_public: bool = False
    category: str = "other"
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Activity:
        return cls(
            id=row["activity_type_id"],
            user_id=row["user_id"],
            name=row["name"],
            unit=row["unit"],
            is_public=bool(row["is_public"]),
            category=row["category"],
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row.get("updated_at")),
        )


class ActivityLog(ApiModel):
    """One logged entry of an activity."""

    id: int
    user_id: int
    activity_id: int
    count: float
    notes: str = ""
    logged_at: datetime
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ActivityLog:
        return cls(
            id=row["log_id"],
            user_id=row["user_id"],
            activity_id=row["activity_type_id"],
            count=row["count"],
            notes=row["notes"] or "",
            logged_at=from_db_timestamp(row["logged_at"]),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row.get("updated_at")),
        )


class PeriodTotal(ApiModel):
    period: str  # First day of the bucket: "2026-10-18", "2026-10" or "2026"
    total: float = 0
    entries: int = 0
    average: float = 0
    minimum: float | None = None
    maximum: float | None = None


class ActivityStats(ApiModel):
    activity_id: int
    today: float = 0
    week: float = 0
    month: float = 0
    year: float = 0
    period: str = "daily"
    detailed_stats: list[PeriodTotal] = Field(default_factory=list)


# =============================================================================
# Goals
# =============================================================================


class Goal(ApiModel):
    """A periodic target against one activity."""

    id: int
    owner_id: int
    activity_id: int
    name: str | None = None
    description: str | None = None
    target_value: float
    period_type: PeriodType | str
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool = True
    is_completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Goal:
        return cls(
            id=row["goal_id"],
            owner_id=row["user_id"],
            activity_id=row["activity_type_id"],
            name=row.get("name"),
            description=row.get("description"),
            target_value=row["target_count"],
            period_type=row["period_type"],
            start_date=from_db_date(row.get("start_date")),
            end_date=from_db_date(row.get("end_date")),
            is_active=bool(row["is_active"]),
            is_completed=bool(row["is_completed"]),
            completed_at=from_db_timestamp(row.get("completed_at")),
            created_at=from_db_timestamp(row["created_at"]),
            updated_at=from_db_timestamp(row.get("updated_at")),
        )


class GoalProgress(ApiModel):
    """
    Point-in-time progress of a goal.

    Always derived from the activity log, never stored.
    """

    goal_id: int
    current_count: int | float
    target_count: int | float
    progress_percent: int  # 0-100, capped
    remaining: int | float
    completed: bool
    period_start: datetime | None = None
    period_end: datetime | None = None
    entry_count: int = 0


class GoalWithProgress(Goal):
    progress: GoalProgress


# =============================================================================
# Achievements
# =============================================================================


class AchievementType(ApiModel):
    id: int
    code: str | None = None
    name: str
    description: str = ""
    icon: str | None = None
    criteria: dict[str, Any] = Field(default_factory=dict)
    point_value: int = 0
    is_active: bool = True

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> AchievementType:
        return cls(
            id=row["achievement_type_id"],
            code=row.get("code"),
            name=row["name"],
            description=row["description"] or "",
            icon=row.get("icon"),
            criteria=json.loads(row["criteria"] or "{}"),
            point_value=row["point_value"],
            is_active=bool(row["is_active"]),
        )


class UserAchievement(ApiModel):
    id: int
    user_id: int
    achievement_type_id: int
    name: str
    description: str = ""
    icon: str | None = None
    point_value: int = 0
    earned_at: datetime
    custom_message: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserAchievement:
        return cls(
            id=row["user_achievement_id"],
            user_id=row["user_id"],
            achievement_type_id=row["achievement_type_id"],
            name=row["name"],
            description=row["description"] or "",
            icon=row.get("icon"),
            point_value=row["point_value"],
            earned_at=from_db_timestamp(row["earned_at"]),
            custom_message=row.get("custom_message"),
        )


class LeaderboardEntry(ApiModel):
    user_id: int
    username: str
    points: int = 0
    achievements_count: int = 0


# =============================================================================
# Notifications
# =============================================================================


class Notification(ApiModel):
    id: int
    user_id: int
    title: str
    message: str
    notification_type: str = Field(default="info", alias="type")
    is_read: bool = False
    created_at: datetime

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Notification:
        return cls(
            id=row["notification_id"],
            user_id=row["user_id"],
            title=row["title"],
            message=row["message"],
            notification_type=row["type"],
            is_read=bool(row["is_read"]),
            created_at=from_db_timestamp(row["created_at"]),
        )
