# tests/fakes.py

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime

from taskcycle.recurring.models import GeneratedTaskRecord, NewTask, RecurrenceType, RecurringTask, Task


def make_template(
    template_id: str = "rt1",
    *,
    recurrence_type: RecurrenceType = RecurrenceType.DAILY,
    **kwargs,
) -> RecurringTask:
    kwargs.setdefault("title", f"Task {template_id}")
    return RecurringTask(id=template_id, recurrence_type=recurrence_type, **kwargs)


class FakeRecurringRepo:
    """
    In-memory RecurringTaskRepo used for generator unit tests.

    This avoids SQLite and makes tests purely about generation logic:
    gating, idempotence, rescheduling and error handling.

    fail_ops: operation names that raise RuntimeError
    fail_ids: if set, failures only apply to these template ids
    """

    def __init__(
        self,
        templates: list[RecurringTask],
        *,
        fail_ops: set[str] | None = None,
        fail_ids: set[str] | None = None,
    ) -> None:
        self.templates = {t.id: t for t in templates}
        self.tasks: list[Task] = []
        self.records: list[GeneratedTaskRecord] = []
        self.updates: list[tuple[str, date, date]] = []
        self.list_calls = 0
        self.fail_ops = fail_ops or set()
        self.fail_ids = fail_ids
        self._current: str | None = None

    def _maybe_fail(self, op: str, template_id: str | None = None) -> None:
        if op not in self.fail_ops:
            return
        if self.fail_ids is None or template_id in self.fail_ids:
            raise RuntimeError(f"{op} failed")

    def list_active_recurring_tasks(self, *, as_of: date) -> list[RecurringTask]:
        self.list_calls += 1
        self._maybe_fail("list")
        return [
            t
            for t in self.templates.values()
            if t.is_active and (t.next_generation_at is None or t.next_generation_at <= as_of)
        ]

    def list_generated_records(self, recurring_task_id: str, *, since: datetime):
        self._current = recurring_task_id
        self._maybe_fail("records", recurring_task_id)
        return [
            r
            for r in self.records
            if r.recurring_task_id == recurring_task_id and r.generated_at >= since
        ]

    def insert_task(self, task: NewTask) -> Task:
        self._maybe_fail("insert_task", self._current)
        created = Task(
            id=f"task-{len(self.tasks) + 1}",
            title=task.title,
            description=task.description,
            project_id=task.project_id,
            priority=task.priority,
            status=task.status,
            deadline=task.deadline,
        )
        self.tasks.append(created)
        return created

    def insert_generated_record(self, recurring_task_id: str, task_id: str, *, generated_at: datetime) -> None:
        self._maybe_fail("insert_record", recurring_task_id)
        self.records.append(
            GeneratedTaskRecord(
                id=f"gen-{len(self.records) + 1}",
                recurring_task_id=recurring_task_id,
                task_id=task_id,
                generated_at=generated_at,
            )
        )

    def update_recurring_task(
        self,
        recurring_task_id: str,
        *,
        last_generated_at: date,
        next_generation_at: date,
    ) -> None:
        self._maybe_fail("update", recurring_task_id)
        self.updates.append((recurring_task_id, last_generated_at, next_generation_at))
        self.templates[recurring_task_id] = replace(
            self.templates[recurring_task_id],
            last_generated_at=last_generated_at,
            next_generation_at=next_generation_at,
        )
