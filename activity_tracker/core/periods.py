"""
Goal period windows.

A goal counts activity inside its *active period window*: today for a daily
goal, the current Sunday-to-Saturday week for a weekly goal, and so on. The
natural window is always intersected with the goal's own start/end dates so
a goal never reports progress for time outside its lifetime.

All datetimes here are naive local time.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import NamedTuple


class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class PeriodWindow(NamedTuple):
    start: datetime | None
    end: datetime | None

    def contains(self, moment: datetime) -> bool:
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max)


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def _parse_period(period_type: PeriodType | str | None) -> PeriodType:
    try:
        return PeriodType(period_type)
    except ValueError:
        return PeriodType.CUSTOM


def natural_window(period_type: PeriodType | str, now: datetime) -> PeriodWindow | None:
    """
    The calendar window containing ``now`` for a period type.

    Returns None for custom (or unrecognised) periods, which have no natural
    window and use the goal's own dates instead.
    """
    period = _parse_period(period_type)
    today = now.date()

    if period == PeriodType.DAILY:
        return PeriodWindow(start_of_day(today), end_of_day(today))

    if period == PeriodType.WEEKLY:
        # weekday(): Monday == 0 ... Sunday == 6
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return PeriodWindow(start_of_day(sunday), end_of_day(sunday + timedelta(days=6)))

    if period == PeriodType.MONTHLY:
        last_day = calendar.monthrange(today.year, today.month)[1]
        return PeriodWindow(
            start_of_day(today.replace(day=1)),
            end_of_day(today.replace(day=last_day)),
        )

    if period == PeriodType.YEARLY:
        return PeriodWindow(
            start_of_day(date(today.year, 1, 1)),
            end_of_day(date(today.year, 12, 31)),
        )

    return None


def resolve_period_window(
    period_type: PeriodType | str,
    start_date: date | datetime | None,
    end_date: date | datetime | None,
    now: datetime,
) -> PeriodWindow:
    """
    Active window for a goal at ``now``, clamped to the goal's own dates.

    When the natural window does not overlap the goal at all (e.g. a daily
    goal that ended yesterday) the goal's own range is returned.
    """
    goal_start = start_of_day(_as_date(start_date)) if start_date else None
    goal_end = end_of_day(_as_date(end_date)) if end_date else None

    window = natural_window(period_type, now)
    if window is None:
        return PeriodWindow(goal_start, goal_end)

    start, end = window
    if (goal_end is not None and start > goal_end) or (goal_start is not None and end < goal_start):
        return PeriodWindow(goal_start, goal_end)

    if goal_start is not None and start < goal_start:
        start = goal_start
    if goal_end is not None and end > goal_end:
        end = goal_end

    return PeriodWindow(start, end)


def format_period_type(period_type: PeriodType | str) -> str:
    """Display label for a period (``weekly`` -> ``Weekly``)."""
    try:
        return PeriodType(period_type).value.capitalize()
    except ValueError:
        return str(period_type)
