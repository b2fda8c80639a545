# src/taskcycle/recurring/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum


class TaskCycleError(Exception):
    """Base class for all taskcycle errors."""


class InvalidTemplateError(TaskCycleError):
    """Recurring task template data is malformed or violates a rule constraint."""


class StoreError(TaskCycleError):
    """A store round-trip (SQLite or REST) failed."""


class DuplicateGenerationError(StoreError):
    """The store rejected a second generation record for the same template and day."""


class FetchError(TaskCycleError):
    """Listing candidate templates failed; the generation run was aborted."""


class RecurrenceType(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, raw: str | RecurrenceType | None) -> RecurrenceType:
        if isinstance(raw, RecurrenceType):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            raise InvalidTemplateError(f"unknown recurrence_type: {raw!r}") from None


class TaskStatus(StrEnum):
    """Concrete task lifecycle status. Generated tasks always start as not_started."""

    NOT_STARTED = "not_started"
    WAITING_CONFIRMATION = "waiting_confirmation"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.NOT_STARTED
        try:
            return cls(raw)
        except ValueError:
            return cls.NOT_STARTED


@dataclass(slots=True)
class RecurringTask:
    """
    A reusable rule describing a task that is periodically instantiated.

    week_days uses 0=Sunday..6=Saturday and only matters for weekly templates;
    month_day (1..31) only matters for monthly templates.
    next_generation_at is the eligibility gate: None means "eligible immediately".
    """

    id: str
    title: str
    recurrence_type: RecurrenceType
    description: str | None = None
    project_id: str | None = None
    priority: int = 5
    recurrence_interval: int = 1
    week_days: tuple[int, ...] = ()
    month_day: int | None = None
    is_active: bool = True
    last_generated_at: date | None = None
    next_generation_at: date | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True, frozen=True)
class GeneratedTaskRecord:
    id: str
    recurring_task_id: str
    task_id: str
    generated_at: datetime


@dataclass(slots=True, frozen=True)
class NewTask:
    """Fields handed to the store when a task is created."""

    title: str
    priority: int
    deadline: datetime | None
    description: str | None = None
    project_id: str | None = None
    status: TaskStatus = TaskStatus.NOT_STARTED


@dataclass(slots=True)
class Task:
    id: str
    title: str
    priority: int
    status: TaskStatus
    deadline: datetime | None
    description: str | None = None
    project_id: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class GenerationSummary:
    """Outcome of one generation pass (for callers and logs)."""

    today: date
    candidates: int = 0
    generated: list[str] = field(default_factory=list)  # new task ids
    skipped_by_rule: list[str] = field(default_factory=list)
    already_generated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
