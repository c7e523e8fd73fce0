"""
Activity component.

Owns activity types (what a user counts) and the activity log (each time
they count it). Creating a log publishes ``log:created``, which is what
drives goal progress and achievement checks elsewhere.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta
from typing import Any, Callable

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.errors import NotFoundError, OwnershipError
from activity_tracker.core.events import ActivityEvent, EventBus, EventType, LogEvent
from activity_tracker.core.models import Activity, ActivityLog, ActivityStats, PeriodTotal
from activity_tracker.core.periods import (
    PeriodType,
    end_of_day,
    natural_window,
    start_of_day,
)
from activity_tracker.core.utils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)

# Columns callers may sort logs by (interpolated into SQL, so whitelist only)
LOG_ORDER_COLUMNS = {"logged_at", "count", "created_at", "log_id"}

STATS_DEFAULT_DAYS = 30


class TTLCache:
    """Small expiring key/value cache."""

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires, value = entry
        if self._clock() >= expires:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        if self.ttl <= 0:
            return
        now = self._clock()
        self.sweep(now)
        self._entries[key] = (now + self.ttl, value)

    def sweep(self, now: float | None = None) -> int:
        """Drop every expired entry; returns how many were removed."""
        now = self._clock() if now is None else now
        expired = [key for key, (expires, _) in self._entries.items() if now >= expires]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class ActivityComponent(Component):
    """Activity types and logs for each user."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        super().__init__("Activity", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.clock = clock
        self.cache = TTLCache(self.settings.activity_cache_ttl)
        self.db = None

    async def _init(self) -> None:
        self.db = self.require_dependency("Database")

        self.subscribe(EventType.ACTIVITY_CREATED, self._handle_activity_changed)
        self.subscribe(EventType.ACTIVITY_UPDATED, self._handle_activity_changed)
        self.subscribe(EventType.ACTIVITY_DELETED, self._handle_activity_changed)

    async def _shutdown(self) -> None:
        self.cache.clear()

    # =========================================================================
    # Activity types
    # =========================================================================

    def get_all_activities(self, user_id: int) -> list[Activity]:
        cache_key = f"user:{user_id}:activities"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(cached)

        result = self.db.query(
            "SELECT * FROM activity_types WHERE user_id = ? ORDER BY name", (user_id,)
        )
        activities = [Activity.from_row(row) for row in result.rows]
        self.cache.set(cache_key, activities)
        return list(activities)

    def get_activity_by_id(self, activity_id: int) -> Activity:
        cache_key = f"activity:{activity_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        row = self.db.query(
            "SELECT * FROM activity_types WHERE activity_type_id = ?", (activity_id,)
        ).first()
        if row is None:
            raise NotFoundError("Activity not found")

        activity = Activity.from_row(row)
        self.cache.set(cache_key, activity)
        return activity

    def get_owned_activity(self, activity_id: int, user_id: int) -> Activity:
        """Fetch an activity and check that ``user_id`` owns it."""
        activity = self.get_activity_by_id(activity_id)
        if activity.user_id != user_id:
            raise OwnershipError("Activity does not belong to user")
        return activity

    def create_activity(
        self,
        user_id: int,
        name: str,
        unit: str,
        is_public: bool = False,
        category: str = "other",
    ) -> Activity:
        result = self.db.query(
            """
            INSERT INTO activity_types (user_id, name, unit, is_public, category, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, name, unit, int(is_public), category, to_db_timestamp(self.clock())),
        )
        activity = self.get_activity_by_id(result.lastrowid)
        logger.info(f"[Activity] Created activity {activity.id} '{name}' for user {user_id}")

        self.publish(
            EventType.ACTIVITY_CREATED,
            ActivityEvent(activity_id=activity.id, user_id=user_id, name=name),
        )
        return activity

    def update_activity(
        self,
        activity_id: int,
        user_id: int,
        name: str | None = None,
        unit: str | None = None,
        is_public: bool | None = None,
        category: str | None = None,
    ) -> Activity:
        current = self.get_owned_activity(activity_id, user_id)

        self.db.query(
            """
            UPDATE activity_types
            SET name = ?, unit = ?, is_public = ?, category = ?, updated_at = ?
            WHERE activity_type_id = ?
            """,
            (
                name if name is not None else current.name,
                unit if unit is not None else current.unit,
                int(is_public if is_public is not None else current.is_public),
                category if category is not None else current.category,
                to_db_timestamp(self.clock()),
                activity_id,
            ),
        )
        self.cache.delete(f"activity:{activity_id}")

        activity = self.get_activity_by_id(activity_id)
        self.publish(
            EventType.ACTIVITY_UPDATED,
            ActivityEvent(activity_id=activity_id, user_id=user_id, name=activity.name),
        )
        return activity

    def delete_activity(self, activity_id: int, user_id: int) -> bool:
        """Delete an activity type together with its logs and goals."""
        activity = self.get_owned_activity(activity_id, user_id)

        self.db.query("DELETE FROM activity_types WHERE activity_type_id = ?", (activity_id,))
        logger.info(f"[Activity] Deleted activity {activity_id}")

        self.publish(
            EventType.ACTIVITY_DELETED,
            ActivityEvent(activity_id=activity_id, user_id=user_id, name=activity.name),
        )
        return True

    # =========================================================================
    # Logs
    # =========================================================================

    def get_activity_logs(
        self,
        user_id: int,
        activity_id: int | None = None,
        limit: int = 100,
        offset: int = 0,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        order_by: str = "logged_at",
        order_dir: str = "DESC",
    ) -> list[ActivityLog]:
        if order_by not in LOG_ORDER_COLUMNS:
            raise ValueError(f"Cannot order logs by '{order_by}'")
        direction = "ASC" if order_dir.upper() == "ASC" else "DESC"

        text = "SELECT * FROM activity_logs WHERE user_id = ?"
        params: list[Any] = [user_id]

        if activity_id is not None:
            text += " AND activity_type_id = ?"
            params.append(activity_id)
        if start_date is not None:
            text += " AND logged_at >= ?"
            params.append(to_db_timestamp(start_date))
        if end_date is not None:
            text += " AND logged_at <= ?"
            params.append(to_db_timestamp(end_date))

        text += f" ORDER BY {order_by} {direction}, log_id {direction} LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        return [ActivityLog.from_row(row) for row in self.db.query(text, params).rows]

    def get_activity_log(self, log_id: int, user_id: int) -> ActivityLog:
        row = self.db.query("SELECT * FROM activity_logs WHERE log_id = ?", (log_id,)).first()
        if row is None:
            raise NotFoundError("Log not found")
        if row["user_id"] != user_id:
            raise OwnershipError("Log does not belong to user")
        return ActivityLog.from_row(row)

    def create_activity_log(
        self,
        user_id: int,
        activity_id: int,
        count: float,
        notes: str = "",
        logged_at: datetime | None = None,
    ) -> ActivityLog:
        """
        Record one entry for an activity the user owns.

        Publishes ``log:created``; goal progress for the pair is recomputed
        by subscribers before this returns.
        """
        self.get_owned_activity(activity_id, user_id)

        now = self.clock()
        result = self.db.query(
            """
            INSERT INTO activity_logs (user_id, activity_type_id, count, notes, logged_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                user_id,
                activity_id,
                count,
                notes or "",
                to_db_timestamp(logged_at or now),
                to_db_timestamp(now),
            ),
        )
        log = self.get_activity_log(result.lastrowid, user_id)
        logger.debug(f"[Activity] Logged {count} for activity {activity_id} (user {user_id})")

        self.publish(
            EventType.LOG_CREATED,
            LogEvent(log_id=log.id, user_id=user_id, activity_id=activity_id, count=count),
        )
        return log

    def update_activity_log(
        self,
        log_id: int,
        user_id: int,
        count: float | None = None,
        notes: str | None = None,
        logged_at: datetime | None = None,
    ) -> ActivityLog:
        current = self.get_activity_log(log_id, user_id)

        self.db.query(
            "UPDATE activity_logs SET count = ?, notes = ?, logged_at = ?, updated_at = ? WHERE log_id = ?",
            (
                count if count is not None else current.count,
                notes if notes is not None else current.notes,
                to_db_timestamp(logged_at or current.logged_at),
                to_db_timestamp(self.clock()),
                log_id,
            ),
        )
        log = self.get_activity_log(log_id, user_id)

        self.publish(
            EventType.LOG_UPDATED,
            LogEvent(log_id=log_id, user_id=user_id, activity_id=log.activity_id, count=log.count),
        )
        return log

    def delete_activity_log(self, log_id: int, user_id: int) -> bool:
        log = self.get_activity_log(log_id, user_id)

        self.db.query("DELETE FROM activity_logs WHERE log_id = ?", (log_id,))
        self.publish(
            EventType.LOG_DELETED,
            LogEvent(log_id=log_id, user_id=user_id, activity_id=log.activity_id),
        )
        return True

    # =========================================================================
    # Statistics
    # =========================================================================

    def sum_logs(self, user_id: int, activity_id: int, start: datetime | None, end: datetime | None) -> tuple[float, int]:
        """Total count and number of entries logged within ``[start, end]``."""
        text = """
            SELECT COALESCE(SUM(count), 0) AS total, COUNT(*) AS entries
            FROM activity_logs
            WHERE user_id = ? AND activity_type_id = ?
        """
        params: list[Any] = [user_id, activity_id]
        if start is not None:
            text += " AND logged_at >= ?"
            params.append(to_db_timestamp(start))
        if end is not None:
            text += " AND logged_at <= ?"
            params.append(to_db_timestamp(end))

        row = self.db.query(text, params).first()
        return row["total"], row["entries"]

    def get_activity_stats(
        self,
        user_id: int,
        activity_id: int,
        period: PeriodType | str = PeriodType.DAILY,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> ActivityStats:
        """
        Totals for the current day/week/month/year plus per-period buckets.

        Buckets cover ``start_date``..``end_date`` (default: the last 30
        days) and are labelled by the first day of each period.
        """
        self.get_owned_activity(activity_id, user_id)
        now = self.clock()

        totals = {}
        for key, period_type in (
            ("today", PeriodType.DAILY),
            ("week", PeriodType.WEEKLY),
            ("month", PeriodType.MONTHLY),
            ("year", PeriodType.YEARLY),
        ):
            window = natural_window(period_type, now)
            totals[key], _ = self.sum_logs(user_id, activity_id, window.start, window.end)

        try:
            period_type = PeriodType(period)
        except ValueError:
            period_type = PeriodType.DAILY
        if period_type == PeriodType.CUSTOM:
            period_type = PeriodType.DAILY

        range_start = start_of_day(start_date or (now.date() - timedelta(days=STATS_DEFAULT_DAYS)))
        range_end = end_of_day(end_date or now.date())
        logs = self.get_activity_logs(
            user_id,
            activity_id,
            limit=-1,
            start_date=range_start,
            end_date=range_end,
            order_dir="ASC",
        )

        buckets: dict[str, list[float]] = {}
        for log in logs:
            label = _bucket_label(period_type, log.logged_at)
            buckets.setdefault(label, []).append(log.count)

        detailed = [
            PeriodTotal(
                period=label,
                total=sum(counts),
                entries=len(counts),
                average=sum(counts) / len(counts),
                minimum=min(counts),
                maximum=max(counts),
            )
            for label, counts in buckets.items()
        ]

        return ActivityStats(
            activity_id=activity_id,
            period=period_type.value,
            detailed_stats=detailed,
            **totals,
        )

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_activity_changed(self, data: ActivityEvent) -> None:
        self.cache.delete(f"activity:{data.activity_id}")
        self.cache.delete(f"user:{data.user_id}:activities")


def _bucket_label(period_type: PeriodType, moment: datetime) -> str:
    window = natural_window(period_type, moment)
    if period_type == PeriodType.MONTHLY:
        return window.start.strftime("%Y-%m")
    if period_type == PeriodType.YEARLY:
        return window.start.strftime("%Y")
    return window.start.date().isoformat()
