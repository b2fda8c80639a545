# tests/test_generator.py

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

import pytest

from taskcycle.recurring.generator import generate_tasks_from_recurring
from taskcycle.recurring.models import FetchError, GeneratedTaskRecord, RecurrenceType, TaskStatus

from .fakes import FakeRecurringRepo, make_template

NOW = datetime(2026, 10, 15, 9, 30)
TODAY = NOW.date()


def test_monthly_template_generates_on_its_day() -> None:
    template = make_template(
        "rt-monthly",
        recurrence_type=RecurrenceType.MONTHLY,
        month_day=15,
        title="Send invoice",
        description="Monthly invoice run",
        project_id="p1",
        priority=7,
        next_generation_at=None,
    )
    repo = FakeRecurringRepo([template])

    summary = generate_tasks_from_recurring(repo, now=NOW)

    assert len(repo.tasks) == 1
    task = repo.tasks[0]
    assert task.title == "Send invoice"
    assert task.description == "Monthly invoice run"
    assert task.project_id == "p1"
    assert task.priority == 7
    assert task.status is TaskStatus.NOT_STARTED
    assert task.deadline == datetime(2026, 10, 15, 23, 59, 59, 999000)

    assert len(repo.records) == 1
    assert repo.records[0].recurring_task_id == "rt-monthly"
    assert repo.records[0].task_id == task.id
    assert repo.records[0].generated_at == NOW

    assert repo.updates == [("rt-monthly", TODAY, date(2026, 11, 15))]
    assert summary.generated == [task.id]
    assert summary.candidates == 1


def test_second_run_same_day_generates_nothing() -> None:
    repo = FakeRecurringRepo([make_template("rt1")])

    generate_tasks_from_recurring(repo, now=NOW)
    generate_tasks_from_recurring(repo, now=NOW + timedelta(hours=3))

    assert len(repo.tasks) == 1
    assert len(repo.records) == 1


def test_existing_record_today_skips_template() -> None:
    # Gate still open (e.g. edited back to today), but a record exists for today.
    repo = FakeRecurringRepo([make_template("rt1", next_generation_at=TODAY)])
    repo.records.append(
        GeneratedTaskRecord(id="g0", recurring_task_id="rt1", task_id="old", generated_at=NOW - timedelta(hours=2))
    )

    summary = generate_tasks_from_recurring(repo, now=NOW)

    assert repo.tasks == []
    assert repo.updates == []
    assert summary.already_generated == ["rt1"]


def test_record_from_yesterday_does_not_block() -> None:
    repo = FakeRecurringRepo([make_template("rt1", next_generation_at=TODAY)])
    repo.records.append(
        GeneratedTaskRecord(id="g0", recurring_task_id="rt1", task_id="old", generated_at=NOW - timedelta(days=1))
    )

    generate_tasks_from_recurring(repo, now=NOW)

    assert len(repo.tasks) == 1


def test_gate_not_reached_has_no_side_effects() -> None:
    repo = FakeRecurringRepo([make_template("rt1", next_generation_at=TODAY + timedelta(days=1))])

    summary = generate_tasks_from_recurring(repo, now=NOW)

    assert repo.tasks == [] and repo.records == [] and repo.updates == []
    assert summary.candidates == 0


def test_weekly_template_off_day_is_skipped_without_mutation() -> None:
    # 2026-10-15 is a Thursday (4).
    template = make_template(
        "rt-weekly", recurrence_type=RecurrenceType.WEEKLY, week_days=(1, 3), next_generation_at=TODAY
    )
    repo = FakeRecurringRepo([template])

    summary = generate_tasks_from_recurring(repo, now=NOW)

    assert summary.skipped_by_rule == ["rt-weekly"]
    assert repo.tasks == [] and repo.updates == []
    assert repo.templates["rt-weekly"].next_generation_at == TODAY


def test_inactive_template_is_frozen() -> None:
    template = make_template("rt-off", is_active=False, next_generation_at=None)
    repo = FakeRecurringRepo([template])

    generate_tasks_from_recurring(repo, now=NOW)

    assert repo.tasks == []
    assert repo.updates == []
    assert repo.templates["rt-off"] is template


def test_daily_interval_reschedules_by_interval() -> None:
    repo = FakeRecurringRepo([make_template("rt1", recurrence_interval=3, next_generation_at=TODAY)])

    generate_tasks_from_recurring(repo, now=NOW)
    assert repo.templates["rt1"].next_generation_at == TODAY + timedelta(days=3)
    assert repo.templates["rt1"].last_generated_at == TODAY

    for offset in (1, 2):
        generate_tasks_from_recurring(repo, now=NOW + timedelta(days=offset))
    assert len(repo.tasks) == 1

    generate_tasks_from_recurring(repo, now=NOW + timedelta(days=3))
    assert len(repo.tasks) == 2


def test_task_insert_failure_is_isolated(caplog: pytest.LogCaptureFixture) -> None:
    repo = FakeRecurringRepo(
        [make_template("bad"), make_template("good")],
        fail_ops={"insert_task"},
        fail_ids={"bad"},
    )

    with caplog.at_level(logging.ERROR, logger="taskcycle.recurring.generator"):
        summary = generate_tasks_from_recurring(repo, now=NOW)

    assert summary.failed == ["bad"]
    assert [t.title for t in repo.tasks] == ["Task good"]
    assert repo.templates["bad"].next_generation_at is None
    assert repo.templates["good"].next_generation_at == TODAY + timedelta(days=1)
    assert any("recurring_task_id=bad" in r.getMessage() for r in caplog.records)


def test_record_insert_failure_leaves_gate_unchanged() -> None:
    repo = FakeRecurringRepo([make_template("rt1")], fail_ops={"insert_record"})

    summary = generate_tasks_from_recurring(repo, now=NOW)

    # Partial state: the task exists, but nothing guards or reschedules it.
    assert len(repo.tasks) == 1
    assert repo.records == []
    assert repo.updates == []
    assert summary.failed == ["rt1"]


def test_record_lookup_failure_skips_template() -> None:
    repo = FakeRecurringRepo([make_template("rt1")], fail_ops={"records"})

    summary = generate_tasks_from_recurring(repo, now=NOW)

    assert repo.tasks == []
    assert summary.failed == ["rt1"]


def test_fetch_failure_aborts_run() -> None:
    repo = FakeRecurringRepo([make_template("rt1")], fail_ops={"list"})

    with pytest.raises(FetchError):
        generate_tasks_from_recurring(repo, now=NOW)

    assert repo.tasks == [] and repo.records == [] and repo.updates == []


def test_explicit_today_is_used_for_rules_and_deadline() -> None:
    repo = FakeRecurringRepo([make_template("rt1")])

    summary = generate_tasks_from_recurring(repo, today=date(2026, 1, 1), now=datetime(2026, 1, 1, 6, 0))

    assert summary.today == date(2026, 1, 1)
    assert repo.tasks[0].deadline == datetime(2026, 1, 1, 23, 59, 59, 999000)
    assert repo.updates == [("rt1", date(2026, 1, 1), date(2026, 1, 2))]
