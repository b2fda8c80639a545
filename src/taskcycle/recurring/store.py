# src/taskcycle/recurring/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from .models import (
    DuplicateGenerationError,
    GeneratedTaskRecord,
    InvalidTemplateError,
    NewTask,
    RecurrenceType,
    RecurringTask,
    StoreError,
    Task,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Columns a caller may change through update_recurring_task_fields().
_TEMPLATE_FIELDS = frozenset(
    {
        "title",
        "description",
        "project_id",
        "priority",
        "recurrence_type",
        "recurrence_interval",
        "week_days",
        "month_day",
        "is_active",
        "last_generated_at",
        "next_generation_at",
    }
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _ts(value: datetime) -> str:
    # Fixed width so that string comparison in SQL matches time order.
    return value.isoformat(timespec="microseconds")


def _now_ts() -> str:
    return _ts(datetime.now())


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    return date.fromisoformat(str(raw)[:10])


def _parse_datetime(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.fromisoformat(str(raw))


class RecurringTaskStore:
    """
    SQLite store for projects, recurring task templates, tasks and generation records.

    The schema is intentionally simple and migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    generated_tasks has a unique index on (recurring_task_id, generated_on), so a
    second generation for the same template and day fails with
    DuplicateGenerationError instead of silently duplicating.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskcycle.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info(
            "RecurringTaskStore ready db=%s templates=%s tasks=%s",
            self._db_path,
            self.count_recurring_tasks(),
            self.count_tasks(),
        )

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    @contextlib.contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        """Connection scope: commit on success, translate sqlite errors, always close."""
        try:
            conn = self._get_conn()
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open {self._db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            if "UNIQUE" in str(exc) and "generated_tasks" in str(exc):
                raise DuplicateGenerationError(str(exc)) from exc
            raise StoreError(str(exc)) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS recurring_tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    project_id TEXT REFERENCES projects(id) ON DELETE SET NULL,
                    priority INTEGER NOT NULL DEFAULT 5,
                    recurrence_type TEXT NOT NULL,
                    recurrence_interval INTEGER NOT NULL DEFAULT 1,
                    week_days TEXT,
                    month_day INTEGER,
                    is_active INTEGER NOT NULL DEFAULT 1,
                    last_generated_at TEXT,
                    next_generation_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    project_id TEXT REFERENCES projects(id) ON DELETE SET NULL,
                    title TEXT NOT NULL,
                    description TEXT,
                    priority INTEGER NOT NULL DEFAULT 5,
                    status TEXT NOT NULL DEFAULT 'not_started',
                    deadline TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS generated_tasks (
                    id TEXT PRIMARY KEY,
                    recurring_task_id TEXT NOT NULL
                        REFERENCES recurring_tasks(id) ON DELETE CASCADE,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    generated_at TEXT NOT NULL,
                    generated_on TEXT
                )
                """
            )

            # Migrations (safe): add missing columns.
            def add_cols(table: str, wanted: dict[str, str]) -> None:
                cur.execute(f"PRAGMA table_info({table})")
                cols = {row["name"] for row in cur.fetchall()}
                for name, decl in wanted.items():
                    if name in cols:
                        continue
                    cur.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")
                    logger.info("RecurringTaskStore migration: added column %s.%s", table, name)

            add_cols(
                "recurring_tasks",
                {
                    "recurrence_interval": "INTEGER NOT NULL DEFAULT 1",
                    "week_days": "TEXT",
                    "month_day": "INTEGER",
                    "last_generated_at": "TEXT",
                    "next_generation_at": "TEXT",
                },
            )
            add_cols("generated_tasks", {"generated_on": "TEXT"})
            cur.execute(
                "UPDATE generated_tasks SET generated_on = substr(generated_at, 1, 10) "
                "WHERE generated_on IS NULL"
            )

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_recurring_active_gate "
                "ON recurring_tasks(is_active, next_generation_at)"
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_generated_once_per_day "
                "ON generated_tasks(recurring_task_id, generated_on)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)")

    @staticmethod
    def _week_days_to_str(week_days: tuple[int, ...] | list[int] | None) -> str | None:
        if not week_days:
            return None
        return json.dumps(sorted(int(d) for d in week_days))

    @staticmethod
    def _str_to_week_days(s: str | None) -> tuple[int, ...]:
        if not s:
            return ()
        try:
            val = json.loads(s)
        except ValueError:
            raise InvalidTemplateError(f"week_days is not JSON: {s!r}") from None
        if not isinstance(val, list):
            raise InvalidTemplateError(f"week_days is not a list: {s!r}")
        return tuple(int(d) for d in val)

    @classmethod
    def _encode_field(cls, name: str, value: Any) -> Any:
        if value is None:
            return None
        if name == "week_days":
            return cls._week_days_to_str(value)
        if name == "is_active":
            return 1 if value else 0
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, datetime):
            return _ts(value)
        if isinstance(value, date):
            return value.isoformat()
        return value

    def _row_to_template(self, row: sqlite3.Row) -> RecurringTask:
        month_day = row["month_day"]
        return RecurringTask(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            project_id=row["project_id"],
            priority=int(row["priority"] if row["priority"] is not None else 5),
            recurrence_type=RecurrenceType.parse(row["recurrence_type"]),
            recurrence_interval=int(row["recurrence_interval"] or 1),
            week_days=self._str_to_week_days(row["week_days"]),
            month_day=int(month_day) if month_day is not None else None,
            is_active=bool(row["is_active"]),
            last_generated_at=_parse_date(row["last_generated_at"]),
            next_generation_at=_parse_date(row["next_generation_at"]),
            created_at=_parse_datetime(row["created_at"]),
            updated_at=_parse_datetime(row["updated_at"]),
        )

    def _rows_to_templates(self, rows: list[sqlite3.Row]) -> list[RecurringTask]:
        out: list[RecurringTask] = []
        for r in rows:
            try:
                out.append(self._row_to_template(r))
            except (InvalidTemplateError, ValueError):
                logger.warning("Skipping malformed recurring task id=%s", r["id"], exc_info=True)
        return out

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            description=row["description"],
            project_id=row["project_id"],
            priority=int(row["priority"] if row["priority"] is not None else 5),
            status=TaskStatus.from_db(row["status"]),
            deadline=_parse_datetime(row["deadline"]),
            created_at=_parse_datetime(row["created_at"]),
        )

    # ---- projects ----

    def add_project(self, name: str) -> str:
        if not name or not name.strip():
            raise ValueError("name is required")
        project_id = _new_id()
        now = _now_ts()
        with self._session() as conn:
            conn.execute(
                "INSERT INTO projects(id, name, created_at, updated_at) VALUES (?, ?, ?, ?)",
                (project_id, name.strip(), now, now),
            )
        return project_id

    # ---- recurring task templates ----

    def count_recurring_tasks(self) -> int:
        with self._session() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM recurring_tasks").fetchone()
            return int(n)

    def add_recurring_task(self, template: RecurringTask) -> str:
        template_id = template.id or _new_id()
        now = _now_ts()
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO recurring_tasks(
                    id, title, description, project_id, priority,
                    recurrence_type, recurrence_interval, week_days, month_day,
                    is_active, last_generated_at, next_generation_at,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template_id,
                    template.title,
                    template.description,
                    template.project_id,
                    int(template.priority),
                    template.recurrence_type.value,
                    int(template.recurrence_interval),
                    self._week_days_to_str(template.week_days),
                    template.month_day,
                    1 if template.is_active else 0,
                    self._encode_field("last_generated_at", template.last_generated_at),
                    self._encode_field("next_generation_at", template.next_generation_at),
                    now,
                    now,
                ),
            )
        logger.debug(
            "Recurring task added id=%s type=%s gate=%s",
            template_id,
            template.recurrence_type.value,
            template.next_generation_at,
        )
        return template_id

    def get_recurring_task(self, recurring_task_id: str) -> RecurringTask | None:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM recurring_tasks WHERE id = ?", (recurring_task_id,)
            ).fetchone()
        return self._row_to_template(row) if row else None

    def list_recurring_tasks(self) -> list[RecurringTask]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM recurring_tasks ORDER BY created_at DESC"
            ).fetchall()
        return self._rows_to_templates(rows)

    def list_active_recurring_tasks(self, *, as_of: date) -> list[RecurringTask]:
        """
        Candidate templates for a generation pass on `as_of`:
        is_active AND (next_generation_at IS NULL OR next_generation_at <= as_of).

        Rows that cannot be parsed (e.g. unknown recurrence_type) are logged and skipped.
        """
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM recurring_tasks
                WHERE is_active = 1
                  AND (next_generation_at IS NULL OR next_generation_at <= ?)
                ORDER BY created_at ASC
                """,
                (as_of.isoformat(),),
            ).fetchall()
        return self._rows_to_templates(rows)

    def update_recurring_task_fields(self, recurring_task_id: str, fields: dict[str, Any]) -> None:
        unknown = set(fields) - _TEMPLATE_FIELDS
        if unknown:
            raise ValueError(f"unknown recurring task fields: {sorted(unknown)}")
        if not fields:
            return

        sets = [f"{name} = ?" for name in fields]
        params = [self._encode_field(name, value) for name, value in fields.items()]
        sets.append("updated_at = ?")
        params.append(_now_ts())
        params.append(recurring_task_id)

        sql = f"UPDATE recurring_tasks SET {', '.join(sets)} WHERE id = ?"
        with self._session() as conn:
            conn.execute(sql, params)

    def update_recurring_task(
        self,
        recurring_task_id: str,
        *,
        last_generated_at: date,
        next_generation_at: date,
    ) -> None:
        self.update_recurring_task_fields(
            recurring_task_id,
            {"last_generated_at": last_generated_at, "next_generation_at": next_generation_at},
        )

    def delete_recurring_task(self, recurring_task_id: str) -> None:
        """Delete a template; its generation records go with it, generated tasks stay."""
        with self._session() as conn:
            conn.execute("DELETE FROM recurring_tasks WHERE id = ?", (recurring_task_id,))

    # ---- tasks ----

    def count_tasks(self) -> int:
        with self._session() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def insert_task(self, task: NewTask) -> Task:
        if not task.title or not task.title.strip():
            raise ValueError("title is required")

        task_id = _new_id()
        now = _now_ts()
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO tasks(
                    id, project_id, title, description, priority, status,
                    deadline, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task_id,
                    task.project_id,
                    task.title,
                    task.description,
                    int(task.priority),
                    task.status.value,
                    _ts(task.deadline) if task.deadline is not None else None,
                    now,
                    now,
                ),
            )
        logger.debug("Task added id=%s title=%r deadline=%s", task_id, task.title, task.deadline)
        return Task(
            id=task_id,
            title=task.title,
            description=task.description,
            project_id=task.project_id,
            priority=int(task.priority),
            status=task.status,
            deadline=task.deadline,
            created_at=datetime.fromisoformat(now),
        )

    def list_tasks(self, *, project_id: str | None = None) -> list[Task]:
        with self._session() as conn:
            if project_id is None:
                rows = conn.execute("SELECT * FROM tasks ORDER BY created_at ASC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE project_id = ? ORDER BY created_at ASC",
                    (project_id,),
                ).fetchall()
        return [self._row_to_task(r) for r in rows]

    # ---- generation records ----

    def list_generated_records(
        self,
        recurring_task_id: str,
        *,
        since: datetime,
    ) -> list[GeneratedTaskRecord]:
        with self._session() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM generated_tasks
                WHERE recurring_task_id = ?
                  AND generated_at >= ?
                ORDER BY generated_at ASC
                """,
                (recurring_task_id, _ts(since)),
            ).fetchall()
        return [
            GeneratedTaskRecord(
                id=str(r["id"]),
                recurring_task_id=str(r["recurring_task_id"]),
                task_id=str(r["task_id"]),
                generated_at=datetime.fromisoformat(r["generated_at"]),
            )
            for r in rows
        ]

    def insert_generated_record(
        self,
        recurring_task_id: str,
        task_id: str,
        *,
        generated_at: datetime,
    ) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO generated_tasks(
                    id, recurring_task_id, task_id, generated_at, generated_on
                )
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    _new_id(),
                    recurring_task_id,
                    task_id,
                    _ts(generated_at),
                    generated_at.date().isoformat(),
                ),
            )
