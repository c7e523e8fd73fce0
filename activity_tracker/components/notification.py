"""
Notification component.

Turns domain events into user-facing notifications. Notifications are
stored so the client can list them; email delivery is logged only, there is
no mail transport configured.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from activity_tracker.config import Settings, get_settings
from activity_tracker.core.component import Component
from activity_tracker.core.errors import NotFoundError, OwnershipError
from activity_tracker.core.events import (
    AchievementEarned,
    EventBus,
    EventType,
    GoalAchieved,
    NotificationCreated,
    UserEvent,
)
from activity_tracker.core.models import Notification
from activity_tracker.core.utils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)


class NotificationComponent(Component):
    """Stores notifications for users and reacts to milestone events."""

    def __init__(
        self,
        settings: Settings | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] = local_now,
    ):
        super().__init__("Notification", event_bus=event_bus)
        self.settings = settings or get_settings()
        self.clock = clock
        self.db = None

    async def _init(self) -> None:
        self.db = self.require_dependency("Database")

        self.subscribe(EventType.USER_CREATED, self._handle_user_created)
        self.subscribe(EventType.GOAL_ACHIEVED, self._handle_goal_achieved)
        self.subscribe(EventType.ACHIEVEMENT_EARNED, self._handle_achievement_earned)

    # =========================================================================
    # Delivery
    # =========================================================================

    def send_email(self, to: str, subject: str, text: str, html: str | None = None) -> bool:
        logger.info(f"[Notification] Sending email to {to}: {subject}")
        return True

    def send_notification(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: str = "info",
    ) -> Notification:
        result = self.db.query(
            """
            INSERT INTO notifications (user_id, title, message, type, is_read, created_at)
            VALUES (?, ?, ?, ?, 0, ?)
            """,
            (user_id, title, message, notification_type, to_db_timestamp(self.clock())),
        )
        notification = self._get_notification(result.lastrowid)

        self.publish(
            EventType.NOTIFICATION_CREATED,
            NotificationCreated(
                notification_id=notification.id,
                user_id=user_id,
                title=title,
                message=message,
                notification_type=notification_type,
            ),
        )
        return notification

    # =========================================================================
    # Queries
    # =========================================================================

    def _get_notification(self, notification_id: int) -> Notification:
        row = self.db.query(
            "SELECT * FROM notifications WHERE notification_id = ?", (notification_id,)
        ).first()
        if row is None:
            raise NotFoundError("Notification not found")
        return Notification.from_row(row)

    def get_user_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        text = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            text += " AND is_read = 0"
        text += " ORDER BY created_at DESC, notification_id DESC LIMIT ?"
        result = self.db.query(text, (user_id, limit))
        return [Notification.from_row(row) for row in result.rows]

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self._get_notification(notification_id)
        if notification.user_id != user_id:
            raise OwnershipError("Notification does not belong to user")

        self.db.query(
            "UPDATE notifications SET is_read = 1 WHERE notification_id = ?", (notification_id,)
        )
        return self._get_notification(notification_id)

    # =========================================================================
    # Event handlers
    # =========================================================================

    def _handle_user_created(self, data: UserEvent) -> None:
        logger.info(f"[Notification] New user created: {data.username}")
        if data.email:
            self.send_email(data.email, "Welcome to Activity Tracker", f"Welcome, {data.username}!")
        self.send_notification(
            data.user_id,
            "Welcome!",
            "Start by creating an activity and logging your first entry.",
        )

    def _handle_goal_achieved(self, data: GoalAchieved) -> None:
        logger.info(f"[Notification] Goal achieved for user {data.user_id}: {data.goal_name}")
        self.send_notification(
            data.user_id,
            "Goal achieved!",
            f"You reached your {data.goal_period.lower()} goal of "
            f"{data.goal_target:g} {data.goal_unit} for {data.goal_name}.",
            notification_type="goal",
        )

    def _handle_achievement_earned(self, data: AchievementEarned) -> None:
        logger.info(f"[Notification] Achievement earned for user {data.user_id}: {data.achievement_name}")
        self.send_notification(
            data.user_id,
            f"Achievement unlocked: {data.achievement_name}",
            data.custom_message or data.achievement_description or data.achievement_name,
            notification_type="achievement",
        )
