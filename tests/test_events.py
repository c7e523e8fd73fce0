"""
Tests for the event bus.

Delivery is synchronous, ordered, isolated per subscriber and based on the
subscribers present when publish is called.
"""

import logging

import pytest

from activity_tracker.core.events import (
    EventBus,
    EventType,
    GoalAchieved,
    LogEvent,
    NotificationCreated,
    get_event_bus,
    reset_event_bus,
)


# =============================================================================
# Delivery
# =============================================================================


class TestPublish:
    def test_no_subscribers_returns_false(self, bus):
        assert bus.publish("log:created", {"x": 1}) is False

    def test_subscribers_called_in_order(self, bus):
        calls = []
        bus.subscribe("log:created", lambda data: calls.append(("first", data)))
        bus.subscribe("log:created", lambda data: calls.append(("second", data)))

        payload = {"logId": 1}
        assert bus.publish("log:created", payload) is True

        assert calls == [("first", payload), ("second", payload)]
        # Passed by reference
        assert calls[0][1] is payload

    def test_enum_and_string_names_are_the_same_event(self, bus):
        calls = []
        bus.subscribe(EventType.LOG_CREATED, calls.append)

        bus.publish("log:created", 1)
        bus.publish(EventType.LOG_CREATED, 2)

        assert calls == [1, 2]

    def test_other_events_not_delivered(self, bus):
        calls = []
        bus.subscribe("goal:created", calls.append)

        bus.publish("goal:deleted", 1)

        assert calls == []

    def test_failing_subscriber_does_not_stop_others(self, bus, caplog):
        calls = []

        def broken(data):
            raise RuntimeError("boom")

        bus.subscribe("log:created", lambda data: calls.append("a"))
        bus.subscribe("log:created", broken)
        bus.subscribe("log:created", lambda data: calls.append("c"))

        with caplog.at_level(logging.ERROR):
            assert bus.publish("log:created") is True

        assert calls == ["a", "c"]
        assert "boom" in caplog.text

    def test_subscribers_snapshotted_at_publish(self, bus):
        calls = []
        late = []

        def subscribe_more(data):
            calls.append("first")
            bus.subscribe("log:created", lambda d: late.append(d))

        bus.subscribe("log:created", subscribe_more)

        bus.publish("log:created", 1)
        assert calls == ["first"]
        assert late == []

        bus.publish("log:created", 2)
        assert late == [2]

    def test_unsubscribe_during_publish_still_delivers_current_round(self, bus):
        calls = []
        handles = {}

        def first(data):
            calls.append("first")
            handles["second"].unsubscribe()

        bus.subscribe("log:created", first)
        handles["second"] = bus.subscribe("log:created", lambda d: calls.append("second"))

        bus.publish("log:created")
        bus.publish("log:created")

        assert calls == ["first", "second", "first"]

    def test_context_binds_plain_functions(self, bus):
        class Owner:
            name = "owner"

        owner = Owner()
        seen = []

        def handler(self, data):
            seen.append((self.name, data))

        bus.subscribe("goal:created", handler, context=owner)
        bus.publish("goal:created", 7)

        assert seen == [("owner", 7)]


# =============================================================================
# Subscriptions
# =============================================================================


class TestSubscriptions:
    def test_unsubscribe_is_idempotent(self, bus):
        calls = []
        handle = bus.subscribe("log:created", calls.append)

        handle.unsubscribe()
        handle.unsubscribe()

        assert handle.active is False
        assert bus.publish("log:created", 1) is False
        assert calls == []

    def test_unsubscribe_removes_only_that_registration(self, bus):
        calls = []
        first = bus.subscribe("log:created", calls.append)
        bus.subscribe("log:created", calls.append)

        first.unsubscribe()
        bus.publish("log:created", 1)

        # Same callback registered twice: exactly one registration remains
        assert calls == [1]
        assert bus.subscriber_count("log:created") == 1

    def test_empty_event_name_rejected(self, bus):
        with pytest.raises(ValueError):
            bus.subscribe("", lambda data: None)
        with pytest.raises(ValueError):
            bus.publish("   ")

    def test_clear_one_event(self, bus):
        kept = bus.subscribe("goal:created", lambda d: None)
        dropped = bus.subscribe("goal:deleted", lambda d: None)

        bus.clear("goal:deleted")

        assert kept.active
        assert not dropped.active
        assert bus.get_stats() == {"goal:created": 1}

    def test_clear_all(self, bus):
        handle = bus.subscribe("goal:created", lambda d: None)
        bus.subscribe("goal:deleted", lambda d: None)

        bus.clear()

        assert bus.get_stats() == {}
        # Unsubscribing after clear is a no-op
        handle.unsubscribe()

    def test_stats(self, bus):
        bus.subscribe("a:b", lambda d: None)
        bus.subscribe("a:b", lambda d: None)
        bus.subscribe("c:d", lambda d: None)

        assert bus.get_stats() == {"a:b": 2, "c:d": 1}


# =============================================================================
# Payloads
# =============================================================================


class TestPayloads:
    def test_goal_achieved_serializes_camel_case(self):
        payload = GoalAchieved(
            user_id=1,
            goal_id=2,
            goal_name="Push-ups",
            goal_target=50,
            goal_unit="reps",
            goal_period="Weekly",
        )

        data = payload.to_dict()

        assert set(data) == {
            "userId", "goalId", "goalName", "goalTarget", "goalUnit", "goalPeriod", "timestamp",
        }
        assert data["goalTarget"] == 50

    def test_payloads_accept_aliases(self):
        payload = LogEvent.model_validate({"logId": 1, "userId": 2, "activityId": 3, "count": 4})
        assert payload.log_id == 1
        assert payload.activity_id == 3

    def test_notification_type_alias(self):
        payload = NotificationCreated(user_id=1, title="t", message="m", notification_type="goal")
        assert payload.to_dict()["type"] == "goal"

    def test_debug_mode_warns_on_wrong_payload(self, caplog):
        bus = EventBus(debug=True)
        bus.subscribe(EventType.LOG_CREATED, lambda d: None)

        with caplog.at_level(logging.WARNING):
            bus.publish(EventType.LOG_CREATED, {"logId": 1})

        assert "expected LogEvent" in caplog.text


# =============================================================================
# Default bus
# =============================================================================


class TestDefaultBus:
    def test_singleton_and_reset(self):
        reset_event_bus()
        first = get_event_bus()
        assert get_event_bus() is first

        first.subscribe("x:y", lambda d: None)
        reset_event_bus()

        second = get_event_bus()
        assert second is not first
        assert second.get_stats() == {}
        reset_event_bus()
