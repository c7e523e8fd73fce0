"""
Goal component.

Goals are periodic targets against one activity ("50 push-ups a week").
Progress is never stored: it is recomputed from the activity log each time
it is asked for, and whenever a log is created for the goal's activity.

The first time a goal's progress reaches 100% the completion flag is
persisted and ``goal:achieved`` is published. That happens at most once per
goal: the flag is set with a conditional update, and only the caller that
flips it publishes.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.errors import InvalidGoalError, NotFoundError, OwnershipError
from activity_tracker.core.events import EventBus, EventType, GoalAchieved, GoalEvent, LogEvent
from activity_tracker.core.models import Goal, GoalProgress, GoalWithProgress
from activity_tracker.core.periods import PeriodType, format_period_type, resolve_period_window
from activity_tracker.core.utils import (
    as_number,
    local_now,
    round_half_up,
    to_db_date,
    to_db_timestamp,
)

logger = logging.getLogger(__name__)


class GoalComponent(Component):
    """Goal CRUD and the progress computation."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        super().__init__("Goal", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.clock = clock
        self.db = None
        self.activities = None

    async def _init(self) -> None:
        self.db = self.require_dependency("Database")
        self.activities = self.require_dependency("Activity")

        self.subscribe(EventType.LOG_CREATED, self._handle_log_created)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_user_goals(self, user_id: int) -> list[Goal]:
        result = self.db.query(
            "SELECT * FROM goals WHERE user_id = ? ORDER BY created_at DESC, goal_id DESC",
            (user_id,),
        )
        return [Goal.from_row(row) for row in result.rows]

    def get_user_goals_by_activity(self, user_id: int, activity_id: int) -> list[Goal]:
        """Active goals of a user for one activity."""
        result = self.db.query(
            """
            SELECT * FROM goals
            WHERE user_id = ? AND activity_type_id = ? AND is_active = 1
            ORDER BY goal_id
            """,
            (user_id, activity_id),
        )
        return [Goal.from_row(row) for row in result.rows]

    def get_goal_by_id(self, goal_id: int) -> Goal:
        row = self.db.query("SELECT * FROM goals WHERE goal_id = ?", (goal_id,)).first()
        if row is None:
            raise NotFoundError("Goal not found")
        return Goal.from_row(row)

    def get_owned_goal(self, goal_id: int, user_id: int) -> Goal:
        goal = self.get_goal_by_id(goal_id)
        if goal.owner_id != user_id:
            raise OwnershipError("Goal does not belong to user")
        return goal

    # =========================================================================
    # Mutations
    # =========================================================================

    def create_goal(
        self,
        user_id: int,
        activity_id: int,
        target_value: float,
        period_type: PeriodType | str = PeriodType.WEEKLY,
        start_date: date | None = None,
        end_date: date | None = None,
        name: str | None = None,
        description: str | None = None,
    ) -> Goal:
        """
        Create a goal against an activity the user owns.

        Raises:
            InvalidGoalError: Non-positive target or end date before start date
            NotFoundError: Unknown activity
            OwnershipError: Activity belongs to another user
        """
        _validate_goal(target_value, start_date, end_date)
        self.activities.get_owned_activity(activity_id, user_id)

        result = self.db.query(
            """
            INSERT INTO goals (
                user_id, activity_type_id, target_count, period_type,
                start_date, end_date, name, description, is_active, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
            """,
            (
                user_id,
                activity_id,
                target_value,
                _period_value(period_type),
                to_db_date(start_date),
                to_db_date(end_date),
                name,
                description,
                to_db_timestamp(self.clock()),
            ),
        )
        goal = self.get_goal_by_id(result.lastrowid)
        logger.info(f"[Goal] Created goal {goal.id} for user {user_id} on activity {activity_id}")

        self.publish(
            EventType.GOAL_CREATED,
            GoalEvent(goal_id=goal.id, user_id=user_id, activity_id=activity_id),
        )
        return goal

    def update_goal(self, goal_id: int, user_id: int, **changes: Any) -> Goal:
        """
        Update the given fields of a goal.

        Accepts ``target_value``, ``period_type``, ``start_date``,
        ``end_date``, ``name``, ``description`` and ``is_active``.
        """
        current = self.get_owned_goal(goal_id, user_id)
        columns = {
            "target_value": "target_count",
            "period_type": "period_type",
            "start_date": "start_date",
            "end_date": "end_date",
            "name": "name",
            "description": "description",
            "is_active": "is_active",
        }
        unknown = set(changes) - set(columns)
        if unknown:
            raise InvalidGoalError(f"Unknown goal fields: {', '.join(sorted(unknown))}")

        merged = {**current.model_dump(), **changes}
        _validate_goal(merged["target_value"], merged["start_date"], merged["end_date"])

        values = {
            "target_count": merged["target_value"],
            "period_type": _period_value(merged["period_type"]),
            "start_date": to_db_date(merged["start_date"]),
            "end_date": to_db_date(merged["end_date"]),
            "name": merged["name"],
            "description": merged["description"],
            "is_active": int(bool(merged["is_active"])),
        }
        assignments = ", ".join(f"{column} = ?" for column in values)
        self.db.query(
            f"UPDATE goals SET {assignments}, updated_at = ? WHERE goal_id = ?",
            (*values.values(), to_db_timestamp(self.clock()), goal_id),
        )

        self.publish(
            EventType.GOAL_UPDATED,
            GoalEvent(goal_id=goal_id, user_id=user_id, activity_id=current.activity_id),
        )
        return self.get_goal_by_id(goal_id)

    def delete_goal(self, goal_id: int, user_id: int) -> bool:
        goal = self.get_owned_goal(goal_id, user_id)

        self.db.query("DELETE FROM goals WHERE goal_id = ?", (goal_id,))
        self.publish(
            EventType.GOAL_DELETED,
            GoalEvent(goal_id=goal_id, user_id=user_id, activity_id=goal.activity_id),
        )
        return True

    # =========================================================================
    # Progress
    # =========================================================================

    def get_goal_progress(self, goal_id: int) -> GoalProgress:
        """
        Compute the goal's progress at the current clock time.

        Sums the owner's logs for the goal's activity inside the active
        period window (inclusive at both ends).
        """
        goal = self.get_goal_by_id(goal_id)
        return self._compute_progress(goal)

    def get_user_goals_with_progress(self, user_id: int) -> list[GoalWithProgress]:
        return [
            GoalWithProgress(**goal.model_dump(), progress=self._compute_progress(goal))
            for goal in self.get_user_goals(user_id)
        ]

    def _compute_progress(self, goal: Goal) -> GoalProgress:
        if goal.target_value <= 0:
            raise InvalidGoalError(f"Goal {goal.id} has a non-positive target")

        window = resolve_period_window(goal.period_type, goal.start_date, goal.end_date, self.clock())
        current, entries = self.activities.sum_logs(goal.owner_id, goal.activity_id, window.start, window.end)

        percent = min(100, round_half_up(current / goal.target_value * 100))
        progress = GoalProgress(
            goal_id=goal.id,
            current_count=as_number(current),
            target_count=as_number(goal.target_value),
            progress_percent=percent,
            remaining=as_number(max(0, goal.target_value - current)),
            completed=percent >= 100,
            period_start=window.start,
            period_end=window.end,
            entry_count=entries,
        )

        if progress.completed and not goal.is_completed:
            self._mark_completed(goal)

        return progress

    def _mark_completed(self, goal: Goal) -> None:
        result = self.db.query(
            "UPDATE goals SET is_completed = 1, completed_at = ? WHERE goal_id = ? AND is_completed = 0",
            (to_db_timestamp(self.clock()), goal.id),
        )
        if result.rowcount == 0:
            # Someone else already recorded the completion
            return

        activity = self.activities.get_activity_by_id(goal.activity_id)
        logger.info(f"[Goal] Goal {goal.id} achieved by user {goal.owner_id}")

        self.publish(
            EventType.GOAL_ACHIEVED,
            GoalAchieved(
                user_id=goal.owner_id,
                goal_id=goal.id,
                goal_name=activity.name,
                goal_target=goal.target_value,
                goal_unit=activity.unit,
                goal_period=format_period_type(goal.period_type),
            ),
        )

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_log_created(self, data: LogEvent) -> None:
        for goal in self.get_user_goals_by_activity(data.user_id, data.activity_id):
            self._compute_progress(goal)


def _period_value(period_type: PeriodType | str) -> str:
    return period_type.value if isinstance(period_type, PeriodType) else str(period_type)


def _validate_goal(target_value: float, start_date: date | None, end_date: date | None) -> None:
    if target_value is None or target_value <= 0:
        raise InvalidGoalError("Goal target must be greater than zero")
    if start_date and end_date and end_date < start_date:
        raise InvalidGoalError("Goal end date is before its start date")
