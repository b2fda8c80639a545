# src/taskcycle/recurring/generator.py

from __future__ import annotations

"""
One generation pass over recurring task templates.

For each active template whose gate has been reached:
- evaluate the calendar rule for today,
- skip it if a generation record already exists for today,
- insert the concrete task and its generation record,
- advance last_generated_at / next_generation_at.

The "already generated today" check is advisory: two passes running at the same
time can both pass it. Run a single scheduler. RecurringTaskStore rejects the
second generation record for a template and day, so a race is logged as a
failure, but the task inserted by the losing pass is not rolled back.
"""

import logging
from datetime import date, datetime

from ..core.ports import RecurringTaskRepo
from .models import FetchError, GenerationSummary, NewTask, RecurringTask, TaskStatus
from .rules import calculate_next_generation_date, deadline_for, should_generate_task, start_of_day

logger = logging.getLogger(__name__)


def build_task(template: RecurringTask, today: date) -> NewTask:
    """Concrete task for `template` generated on `today`."""
    return NewTask(
        title=template.title,
        description=template.description,
        project_id=template.project_id,
        priority=template.priority,
        status=TaskStatus.NOT_STARTED,
        deadline=deadline_for(today),
    )


def generate_tasks_from_recurring(
        repo: RecurringTaskRepo,
        *,
        today: date | None = None,
        now: datetime | None = None,
) -> GenerationSummary:
    """
    Run one generation pass.

    `now` defaults to the local wall clock and `today` to its calendar date; both
    are computed once and used for every template of this pass. When only `today`
    is given, `now` is today's date at the current clock time.

    Raises FetchError if the candidate templates cannot be listed (nothing is
    written in that case). Failures while processing a single template are
    logged and that template is left for the next pass.
    """
    if now is None:
        now = datetime.now()
        if today is not None:
            # Stamp records on the day being generated, not the wall-clock day.
            now = datetime.combine(today, now.time())
    if today is None:
        today = now.date()

    summary = GenerationSummary(today=today)

    try:
        templates = repo.list_active_recurring_tasks(as_of=today)
    except Exception as exc:
        logger.exception("list_active_recurring_tasks failed as_of=%s", today)
        raise FetchError(f"could not list recurring tasks: {exc}") from exc

    summary.candidates = len(templates)
    if not templates:
        logger.debug("No recurring task candidates for %s", today)
        return summary

    since = start_of_day(today)

    for template in templates:
        if not template.is_active:
            # The store filters these already; never touch an inactive template.
            continue

        if not should_generate_task(template, today):
            summary.skipped_by_rule.append(template.id)
            continue

        try:
            existing = repo.list_generated_records(template.id, since=since)
        except Exception:
            logger.exception("list_generated_records failed recurring_task_id=%s", template.id)
            summary.failed.append(template.id)
            continue

        if existing:
            logger.debug("Recurring task %s already generated today", template.id)
            summary.already_generated.append(template.id)
            continue

        try:
            task = repo.insert_task(build_task(template, today))
        except Exception:
            logger.exception("Task insert failed recurring_task_id=%s", template.id)
            summary.failed.append(template.id)
            continue

        try:
            repo.insert_generated_record(template.id, task.id, generated_at=now)

            next_date = calculate_next_generation_date(template, today)
            repo.update_recurring_task(
                template.id,
                last_generated_at=today,
                next_generation_at=next_date,
            )
        except Exception:
            # The task exists but the template was not rescheduled.
            logger.exception(
                "Generation bookkeeping failed recurring_task_id=%s task_id=%s",
                template.id,
                task.id,
            )
            summary.failed.append(template.id)
            continue

        summary.generated.append(task.id)
        logger.info(
            "Recurring task %s -> task %s (next=%s)",
            template.id,
            task.id,
            next_date.isoformat(),
        )

    logger.info(
        "Generation pass %s: candidates=%d generated=%d already=%d failed=%d",
        today.isoformat(),
        summary.candidates,
        len(summary.generated),
        len(summary.already_generated),
        len(summary.failed),
    )
    return summary
