"""
Tests for the notification component and the events that feed it.
"""

import logging

import pytest

from activity_tracker.core.errors import NotFoundError, OwnershipError
from activity_tracker.core.events import EventType


class TestNotifications:
    @pytest.mark.asyncio
    async def test_welcome_on_registration(self, app, caplog):
        caplog.set_level(logging.INFO, logger="activity_tracker.components.notification")

        user = app.auth.register_user("dave", "dave@example.com", "password123")

        (welcome,) = app.notification.get_user_notifications(user.id)
        assert welcome.title == "Welcome!"
        assert welcome.notification_type == "info"
        assert welcome.is_read is False
        assert "Sending email to dave@example.com" in caplog.text

    @pytest.mark.asyncio
    async def test_goal_achieved(self, app, user_id, pushups):
        app.goal.create_goal(user_id, pushups.id, 10, "weekly")

        app.activity.create_activity_log(user_id, pushups.id, 10)

        goal_notes = [n for n in app.notification.get_user_notifications(user_id) if n.notification_type == "goal"]
        assert len(goal_notes) == 1
        assert goal_notes[0].title == "Goal achieved!"
        assert goal_notes[0].message == "You reached your weekly goal of 10 reps for Push-ups."

    @pytest.mark.asyncio
    async def test_achievement_earned(self, app, user_id, pushups):
        app.activity.create_activity_log(user_id, pushups.id, 1)

        titles = [
            n.title
            for n in app.notification.get_user_notifications(user_id)
            if n.notification_type == "achievement"
        ]
        assert titles == ["Achievement unlocked: First Step"]

    @pytest.mark.asyncio
    async def test_newest_first(self, app, user_id):
        app.notification.send_notification(user_id, "One", "first")
        app.clock.advance(minutes=1)
        app.notification.send_notification(user_id, "Two", "second")

        titles = [n.title for n in app.notification.get_user_notifications(user_id)]

        assert titles == ["Two", "One", "Welcome!"]

    @pytest.mark.asyncio
    async def test_publishes_notification_created(self, app, record, user_id):
        recorder = record(EventType.NOTIFICATION_CREATED)

        note = app.notification.send_notification(user_id, "Hi", "there", notification_type="system")

        (payload,) = recorder.of(EventType.NOTIFICATION_CREATED)
        assert payload.notification_id == note.id
        assert payload.to_dict()["type"] == "system"
        assert note.to_dict()["type"] == "system"

    @pytest.mark.asyncio
    async def test_mark_as_read(self, app, user_id):
        (welcome,) = app.notification.get_user_notifications(user_id)

        updated = app.notification.mark_as_read(welcome.id, user_id)

        assert updated.is_read is True
        assert app.notification.get_user_notifications(user_id, unread_only=True) == []
        assert len(app.notification.get_user_notifications(user_id)) == 1

    @pytest.mark.asyncio
    async def test_mark_as_read_checks_owner(self, app, user_id, other_user_id):
        (welcome,) = app.notification.get_user_notifications(user_id)

        with pytest.raises(OwnershipError):
            app.notification.mark_as_read(welcome.id, other_user_id)
        with pytest.raises(NotFoundError):
            app.notification.mark_as_read(9999, user_id)

    @pytest.mark.asyncio
    async def test_limit(self, app, user_id):
        for i in range(5):
            app.notification.send_notification(user_id, f"N{i}", "...")

        assert len(app.notification.get_user_notifications(user_id, limit=3)) == 3
