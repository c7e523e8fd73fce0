"""
Achievement component.

Achievements, badges and points. The catalogue of achievement types is
declared in YAML and seeded into the database on startup; users earn them
through the events other components publish (``log:created`` for count and
streak achievements, ``goal:achieved`` for goal achievements).
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Callable

import yaml

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.errors import NotFoundError
from activity_tracker.core.events import (
    AchievementEarned,
    EventBus,
    EventType,
    GoalAchieved,
    LogEvent,
)
from activity_tracker.core.models import AchievementType, LeaderboardEntry, UserAchievement
from activity_tracker.core.utils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE = Path(__file__).resolve().parent.parent / "resources" / "achievements.yaml"

CRITERIA_TOTAL_COUNT = "total_count"
CRITERIA_GOALS_COMPLETED = "goals_completed"
CRITERIA_STREAK_DAYS = "streak_days"


# =============================================================================
# Catalogue
# =============================================================================


@dataclass
class AchievementDefinition:
    """One entry of the achievement catalogue file."""

    code: str
    name: str
    description: str = ""
    icon: str | None = None
    points: int = 0
    criteria: dict[str, Any] = field(default_factory=dict)

    @property
    def criteria_type(self) -> str | None:
        return self.criteria.get("type")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AchievementDefinition:
        return cls(
            code=data["code"],
            name=data["name"],
            description=data.get("description", ""),
            icon=data.get("icon"),
            points=data.get("points", 0),
            criteria=data.get("criteria", {}),
        )


def load_catalogue(path: Path | str = DEFAULT_CATALOGUE) -> list[AchievementDefinition]:
    """Load achievement definitions from a YAML file."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return [AchievementDefinition.from_dict(item) for item in data.get("achievements", [])]


# =============================================================================
# Component
# =============================================================================


class AchievementComponent(Component):
    """Awards achievements and keeps each user's point total."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        super().__init__("Achievement", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.clock = clock
        self.db = None

    async def _init(self) -> None:
        self.db = self.require_dependency("Database")

        catalogue = load_catalogue(self.settings.achievements_file or DEFAULT_CATALOGUE)
        self.seed_catalogue(catalogue)

        self.subscribe(EventType.LOG_CREATED, self._handle_log_created)
        self.subscribe(EventType.GOAL_ACHIEVED, self._handle_goal_achieved)

    def seed_catalogue(self, definitions: list[AchievementDefinition]) -> int:
        """Insert catalogue entries whose code is not in the database yet."""
        now = to_db_timestamp(self.clock())
        added = 0
        with self.db.transaction():
            for definition in definitions:
                result = self.db.query(
                    """
                    INSERT OR IGNORE INTO achievement_types
                        (code, name, description, icon, criteria, point_value, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        definition.code,
                        definition.name,
                        definition.description,
                        definition.icon,
                        json.dumps(definition.criteria),
                        definition.points,
                        now,
                    ),
                )
                added += result.rowcount

        logger.info(f"[Achievement] Catalogue loaded ({len(definitions)} definitions, {added} new)")
        return added

    # =========================================================================
    # Achievement types
    # =========================================================================

    def get_achievement_types(self, active_only: bool = False) -> list[AchievementType]:
        text = "SELECT * FROM achievement_types"
        if active_only:
            text += " WHERE is_active = 1"
        text += " ORDER BY point_value, achievement_type_id"
        return [AchievementType.from_row(row) for row in self.db.query(text).rows]

    def get_achievement_by_id(self, achievement_type_id: int) -> AchievementType:
        row = self.db.query(
            "SELECT * FROM achievement_types WHERE achievement_type_id = ?",
            (achievement_type_id,),
        ).first()
        if row is None:
            raise NotFoundError("Achievement type not found")
        return AchievementType.from_row(row)

    def create_achievement_type(
        self,
        name: str,
        description: str = "",
        icon: str | None = None,
        criteria: dict[str, Any] | None = None,
        point_value: int = 0,
        code: str | None = None,
    ) -> AchievementType:
        result = self.db.query(
            """
            INSERT INTO achievement_types
                (code, name, description, icon, criteria, point_value, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                code,
                name,
                description,
                icon,
                json.dumps(criteria or {}),
                point_value,
                to_db_timestamp(self.clock()),
            ),
        )
        return self.get_achievement_by_id(result.lastrowid)

    def update_achievement_type(self, achievement_type_id: int, **changes: Any) -> AchievementType:
        current = self.get_achievement_by_id(achievement_type_id)
        merged = {**current.model_dump(), **changes}

        self.db.query(
            """
            UPDATE achievement_types
            SET name = ?, description = ?, icon = ?, criteria = ?, point_value = ?,
                is_active = ?, updated_at = ?
            WHERE achievement_type_id = ?
            """,
            (
                merged["name"],
                merged["description"],
                merged["icon"],
                json.dumps(merged["criteria"]),
                merged["point_value"],
                int(bool(merged["is_active"])),
                to_db_timestamp(self.clock()),
                achievement_type_id,
            ),
        )
        return self.get_achievement_by_id(achievement_type_id)

    # =========================================================================
    # User achievements
    # =========================================================================

    def get_user_achievements(self, user_id: int) -> list[UserAchievement]:
        result = self.db.query(
            """
            SELECT ua.*, at.name, at.description, at.icon, at.point_value
            FROM user_achievements ua
            JOIN achievement_types at ON at.achievement_type_id = ua.achievement_type_id
            WHERE ua.user_id = ?
            ORDER BY ua.earned_at DESC, ua.user_achievement_id DESC
            """,
            (user_id,),
        )
        return [UserAchievement.from_row(row) for row in result.rows]

    def _get_user_achievement(self, user_id: int, achievement_type_id: int) -> UserAchievement | None:
        row = self.db.query(
            """
            SELECT ua.*, at.name, at.description, at.icon, at.point_value
            FROM user_achievements ua
            JOIN achievement_types at ON at.achievement_type_id = ua.achievement_type_id
            WHERE ua.user_id = ? AND ua.achievement_type_id = ?
            """,
            (user_id, achievement_type_id),
        ).first()
        return UserAchievement.from_row(row) if row else None

    def award_achievement(
        self,
        user_id: int,
        achievement_type_id: int,
        custom_message: str | None = None,
    ) -> UserAchievement:
        """
        Award an achievement to a user.

        Awarding one the user already holds returns the existing award
        without adding points or publishing again.
        """
        existing = self._get_user_achievement(user_id, achievement_type_id)
        if existing is not None:
            return existing

        achievement_type = self.get_achievement_by_id(achievement_type_id)
        earned_at = self.clock()

        with self.db.transaction():
            self.db.query(
                """
                INSERT INTO user_achievements (user_id, achievement_type_id, earned_at, custom_message)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, achievement_type_id, to_db_timestamp(earned_at), custom_message),
            )
            self._add_points(user_id, achievement_type.point_value)

        logger.info(f"[Achievement] User {user_id} earned '{achievement_type.name}'")

        self.publish(
            EventType.ACHIEVEMENT_EARNED,
            AchievementEarned(
                user_id=user_id,
                achievement_id=achievement_type_id,
                achievement_name=achievement_type.name,
                achievement_description=achievement_type.description,
                earned_date=earned_at,
                custom_message=custom_message,
            ),
        )
        return self._get_user_achievement(user_id, achievement_type_id)

    def _add_points(self, user_id: int, points: int) -> None:
        self.db.query(
            """
            INSERT INTO user_points (user_id, points) VALUES (?, ?)
            ON CONFLICT (user_id) DO UPDATE SET points = points + excluded.points
            """,
            (user_id, points),
        )

    def get_user_points(self, user_id: int) -> int:
        row = self.db.query("SELECT points FROM user_points WHERE user_id = ?", (user_id,)).first()
        return row["points"] if row else 0

    def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        result = self.db.query(
            """
            SELECT
                u.user_id,
                u.username,
                COALESCE(up.points, 0) AS points,
                COUNT(ua.user_achievement_id) AS achievements_count
            FROM users u
            LEFT JOIN user_points up ON u.user_id = up.user_id
            LEFT JOIN user_achievements ua ON u.user_id = ua.user_id
            GROUP BY u.user_id, u.username, up.points
            ORDER BY points DESC, achievements_count DESC, u.user_id
            LIMIT ?
            """,
            (limit,),
        )
        return [LeaderboardEntry(**row) for row in result.rows]

    # =========================================================================
    # Criteria checks
    # =========================================================================

    def check_achievements(self, user_id: int, criteria_types: set[str]) -> list[UserAchievement]:
        """Award every active, not-yet-earned achievement whose criteria now hold."""
        earned = {a.achievement_type_id for a in self.get_user_achievements(user_id)}
        measured: dict[str, float] = {}
        awarded = []

        for achievement_type in self.get_achievement_types(active_only=True):
            criteria_type = achievement_type.criteria.get("type")
            if criteria_type not in criteria_types or achievement_type.id in earned:
                continue

            if criteria_type not in measured:
                measured[criteria_type] = self._measure(user_id, criteria_type)

            if measured[criteria_type] >= achievement_type.criteria.get("threshold", 1):
                awarded.append(self.award_achievement(user_id, achievement_type.id))

        return awarded

    def _measure(self, user_id: int, criteria_type: str) -> float:
        if criteria_type == CRITERIA_TOTAL_COUNT:
            row = self.db.query(
                "SELECT COALESCE(SUM(count), 0) AS total FROM activity_logs WHERE user_id = ?",
                (user_id,),
            ).first()
            return row["total"]

        if criteria_type == CRITERIA_GOALS_COMPLETED:
            row = self.db.query(
                "SELECT COUNT(*) AS completed FROM goals WHERE user_id = ? AND is_completed = 1",
                (user_id,),
            ).first()
            return row["completed"]

        if criteria_type == CRITERIA_STREAK_DAYS:
            return self.current_streak(user_id)

        logger.warning(f"[Achievement] Unknown criteria type '{criteria_type}'")
        return 0

    def current_streak(self, user_id: int) -> int:
        """Consecutive days with at least one log, ending today."""
        result = self.db.query(
            """
            SELECT DISTINCT substr(logged_at, 1, 10) AS day
            FROM activity_logs
            WHERE user_id = ?
            ORDER BY day DESC
            """,
            (user_id,),
        )
        days = {date.fromisoformat(row["day"]) for row in result.rows}

        streak = 0
        day = self.clock().date()
        while day in days:
            streak += 1
            day -= timedelta(days=1)
        return streak

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_log_created(self, data: LogEvent) -> None:
        self.check_achievements(data.user_id, {CRITERIA_TOTAL_COUNT, CRITERIA_STREAK_DAYS})

    def _handle_goal_achieved(self, data: GoalAchieved) -> None:
        self.check_achievements(data.user_id, {CRITERIA_GOALS_COMPLETED})
