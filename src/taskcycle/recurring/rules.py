# src/taskcycle/recurring/rules.py

from __future__ import annotations

"""
Calendar rules for recurring task templates.

All functions are pure: the reference date ("today") is always passed in,
never read from the wall clock here.

Weekday numbering follows the stored template format: 0=Sunday .. 6=Saturday.
"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import assert_never

from .models import RecurrenceType, RecurringTask

WEEKDAY_LABELS = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

END_OF_DAY = time(23, 59, 59, 999000)


def weekday_number(day: date) -> int:
    """Weekday of `day` with Sunday as 0 (Python's date.weekday() has Monday as 0)."""
    return (day.weekday() + 1) % 7


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def deadline_for(day: date) -> datetime:
    """Deadline of a task generated on `day`: 23:59:59.999 local time."""
    return datetime.combine(day, END_OF_DAY)


def should_generate_task(template: RecurringTask, today: date) -> bool:
    """
    Decide whether `template` must produce a task on `today`.

    - no gate (never generated)     -> True
    - gate strictly after today     -> False
    - otherwise by recurrence type:
        daily   -> True
        weekly  -> today's weekday is listed in week_days (empty -> never)
        monthly -> today's day-of-month equals month_day exactly
    """
    if template.next_generation_at is None:
        return True

    if template.next_generation_at > today:
        return False

    kind = template.recurrence_type
    match kind:
        case RecurrenceType.DAILY:
            return True
        case RecurrenceType.WEEKLY:
            return weekday_number(today) in (template.week_days or ())
        case RecurrenceType.MONTHLY:
            return today.day == template.month_day
        case _:
            assert_never(kind)


def _add_months(from_date: date, months: int, day: int) -> date:
    idx = from_date.month - 1 + months
    year = from_date.year + idx // 12
    month = idx % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def calculate_next_generation_date(template: RecurringTask, from_date: date) -> date:
    """
    Compute the next eligibility gate after a generation on `from_date`.

    daily:   from_date + recurrence_interval days
    weekly:  next listed weekday later this week, else the first listed weekday
             of the following week; no listed weekdays -> +7 days.
             recurrence_interval is not applied to weekly templates.
    monthly: recurrence_interval months later on month_day, clamped to the
             last day of a shorter month (31 -> Feb 28/29).
    """
    kind = template.recurrence_type
    match kind:
        case RecurrenceType.DAILY:
            return from_date + timedelta(days=template.recurrence_interval)

        case RecurrenceType.WEEKLY:
            days = sorted(template.week_days or ())
            if not days:
                return from_date + timedelta(days=7)

            current = weekday_number(from_date)
            later = next((d for d in days if d > current), None)
            if later is not None:
                return from_date + timedelta(days=later - current)
            return from_date + timedelta(days=7 - current + days[0])

        case RecurrenceType.MONTHLY:
            target_day = template.month_day or from_date.day
            return _add_months(from_date, template.recurrence_interval, target_day)

        case _:
            assert_never(kind)


def describe_recurrence(template: RecurringTask) -> str:
    """Short human-readable summary of the template's rule."""
    kind = template.recurrence_type
    match kind:
        case RecurrenceType.DAILY:
            n = template.recurrence_interval
            return "Every day" if n == 1 else f"Every {n} days"
        case RecurrenceType.WEEKLY:
            labels = [WEEKDAY_LABELS[d] for d in sorted(template.week_days or ()) if 0 <= d <= 6]
            return f"Weekly on {', '.join(labels)}" if labels else "Weekly (no days selected)"
        case RecurrenceType.MONTHLY:
            n = template.recurrence_interval
            every = "Monthly" if n == 1 else f"Every {n} months"
            return f"{every} on day {template.month_day}"
        case _:
            assert_never(kind)
