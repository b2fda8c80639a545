# src/taskcycle/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The generator depends on Protocols instead of concrete stores.
This keeps the SQLite and REST backends swappable and makes testing easier.
"""

from datetime import date, datetime
from typing import Any, Protocol

from ..recurring.models import GeneratedTaskRecord, NewTask, RecurringTask, Task


class RecurringTaskRepo(Protocol):
    """Store operations needed by one generation pass."""

    def list_active_recurring_tasks(self, *, as_of: date) -> list[RecurringTask]: ...

    def list_generated_records(
            self,
            recurring_task_id: str,
            *,
            since: datetime,
    ) -> list[GeneratedTaskRecord]: ...

    def insert_task(self, task: NewTask) -> Task: ...

    def insert_generated_record(
            self,
            recurring_task_id: str,
            task_id: str,
            *,
            generated_at: datetime,
    ) -> None: ...

    def update_recurring_task(
            self,
            recurring_task_id: str,
            *,
            last_generated_at: date,
            next_generation_at: date,
    ) -> None: ...


class RecurringTaskAdmin(Protocol):
    """Template management (create/edit/toggle/delete)."""

    def add_recurring_task(self, template: RecurringTask) -> str: ...
    def get_recurring_task(self, recurring_task_id: str) -> RecurringTask | None: ...
    def list_recurring_tasks(self) -> list[RecurringTask]: ...
    def update_recurring_task_fields(self, recurring_task_id: str, fields: dict[str, Any]) -> None: ...
    def delete_recurring_task(self, recurring_task_id: str) -> None: ...
