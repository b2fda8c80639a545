# src/taskcycle/recurring/api.py

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta

from ..core.ports import RecurringTaskAdmin
from .models import InvalidTemplateError, RecurrenceType, RecurringTask
from .rules import calculate_next_generation_date, should_generate_task

logger = logging.getLogger(__name__)

MIN_PRIORITY = 0
MAX_PRIORITY = 10


def normalize_rule(
    recurrence_type: RecurrenceType | str,
    *,
    recurrence_interval: int = 1,
    week_days: list[int] | tuple[int, ...] | None = None,
    month_day: int | None = None,
) -> tuple[RecurrenceType, int, tuple[int, ...], int | None]:
    """
    Validate a recurrence rule and drop the dimensions that do not apply:
    week_days only for weekly, month_day only for monthly.
    """
    kind = RecurrenceType.parse(recurrence_type)

    interval = int(recurrence_interval)
    if interval < 1:
        raise InvalidTemplateError("recurrence_interval must be >= 1")

    days: tuple[int, ...] = ()
    if kind is RecurrenceType.WEEKLY:
        days = tuple(sorted({int(d) for d in (week_days or ())}))
        if not days:
            raise InvalidTemplateError("weekly templates need at least one week day")
        if any(d < 0 or d > 6 for d in days):
            raise InvalidTemplateError("week_days must be in 0..6 (0=Sunday)")

    mday: int | None = None
    if kind is RecurrenceType.MONTHLY:
        if month_day is None:
            raise InvalidTemplateError("monthly templates need month_day")
        mday = int(month_day)
        if not 1 <= mday <= 31:
            raise InvalidTemplateError("month_day must be in 1..31")

    return kind, interval, days, mday


def _check_basics(title: str, priority: int) -> str:
    if not title or not title.strip():
        raise InvalidTemplateError("title is required")
    if not MIN_PRIORITY <= int(priority) <= MAX_PRIORITY:
        raise InvalidTemplateError(f"priority must be in {MIN_PRIORITY}..{MAX_PRIORITY}")
    return title.strip()


def create_recurring_task(
    repo: RecurringTaskAdmin,
    *,
    title: str,
    recurrence_type: RecurrenceType | str,
    today: date,
    description: str | None = None,
    project_id: str | None = None,
    priority: int = 5,
    recurrence_interval: int = 1,
    week_days: list[int] | tuple[int, ...] | None = None,
    month_day: int | None = None,
) -> str:
    """
    Create an active template whose gate is `today`, so the next generation pass
    evaluates it right away.
    """
    clean_title = _check_basics(title, priority)
    kind, interval, days, mday = normalize_rule(
        recurrence_type,
        recurrence_interval=recurrence_interval,
        week_days=week_days,
        month_day=month_day,
    )

    template = RecurringTask(
        id="",
        title=clean_title,
        description=description or None,
        project_id=project_id or None,
        priority=int(priority),
        recurrence_type=kind,
        recurrence_interval=interval,
        week_days=days,
        month_day=mday,
        is_active=True,
        next_generation_at=today,
    )
    template_id = repo.add_recurring_task(template)
    logger.info("Created recurring task id=%s type=%s", template_id, kind.value)
    return template_id


def update_recurring_task_rule(
    repo: RecurringTaskAdmin,
    recurring_task_id: str,
    *,
    title: str,
    recurrence_type: RecurrenceType | str,
    today: date,
    description: str | None = None,
    project_id: str | None = None,
    priority: int = 5,
    recurrence_interval: int = 1,
    week_days: list[int] | tuple[int, ...] | None = None,
    month_day: int | None = None,
) -> None:
    """Replace a template's content and rule. The gate is reset to `today`."""
    clean_title = _check_basics(title, priority)
    kind, interval, days, mday = normalize_rule(
        recurrence_type,
        recurrence_interval=recurrence_interval,
        week_days=week_days,
        month_day=month_day,
    )
    repo.update_recurring_task_fields(
        recurring_task_id,
        {
            "title": clean_title,
            "description": description or None,
            "project_id": project_id or None,
            "priority": int(priority),
            "recurrence_type": kind,
            "recurrence_interval": interval,
            "week_days": days or None,
            "month_day": mday,
            "is_active": True,
            "next_generation_at": today,
        },
    )


def toggle_active(repo: RecurringTaskAdmin, recurring_task_id: str) -> bool:
    """Flip is_active and return the new value."""
    template = repo.get_recurring_task(recurring_task_id)
    if template is None:
        raise KeyError(recurring_task_id)
    new_value = not template.is_active
    repo.update_recurring_task_fields(recurring_task_id, {"is_active": new_value})
    logger.info("Recurring task %s active=%s", recurring_task_id, new_value)
    return new_value


def delete_recurring_task(repo: RecurringTaskAdmin, recurring_task_id: str) -> None:
    repo.delete_recurring_task(recurring_task_id)
    logger.info("Deleted recurring task id=%s", recurring_task_id)


def preview_next_dates(
    template: RecurringTask,
    start: date,
    count: int = 5,
    *,
    max_days: int = 3660,
) -> list[date]:
    """
    Days on which `template` would generate, simulating one pass per day from `start`.

    Uses the same rules as the generator, so quirks show up here too (a monthly
    template on day 31 skips months that have no day 31).
    """
    out: list[date] = []
    current = replace(template)
    day = start
    for _ in range(max_days):
        if len(out) >= count:
            break
        if should_generate_task(current, day):
            out.append(day)
            current = replace(
                current,
                last_generated_at=day,
                next_generation_at=calculate_next_generation_date(current, day),
            )
        day += timedelta(days=1)
    return out
