# src/taskcycle/recurring/rest_store.py

from __future__ import annotations

"""
REST store for a PostgREST-style backend (e.g. a hosted Postgres exposed under /rest/v1).

Tables used: recurring_tasks, tasks, generated_tasks.
Every method is one blocking HTTP round-trip. A unique constraint on
generated_tasks(recurring_task_id, generated_at::date) on the server side turns a
concurrent duplicate into HTTP 409, raised here as DuplicateGenerationError.
"""

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx

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


def _parse_date(raw: Any) -> date | None:
    if not raw:
        return None
    return date.fromisoformat(str(raw)[:10])


def _parse_datetime(raw: Any) -> datetime | None:
    if not raw:
        return None
    s = str(raw)
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, tuple):
        return list(value)
    return value


def template_from_json(row: dict[str, Any]) -> RecurringTask:
    """Build a RecurringTask from a JSON row. Raises InvalidTemplateError on bad data."""
    try:
        week_days = tuple(int(d) for d in (row.get("week_days") or ()))
        month_day = row.get("month_day")
        return RecurringTask(
            id=str(row["id"]),
            title=str(row.get("title") or ""),
            description=row.get("description"),
            project_id=row.get("project_id"),
            priority=int(row.get("priority", 5)),
            recurrence_type=RecurrenceType.parse(row.get("recurrence_type")),
            recurrence_interval=int(row.get("recurrence_interval") or 1),
            week_days=week_days,
            month_day=int(month_day) if month_day is not None else None,
            is_active=bool(row.get("is_active", True)),
            last_generated_at=_parse_date(row.get("last_generated_at")),
            next_generation_at=_parse_date(row.get("next_generation_at")),
            created_at=_parse_datetime(row.get("created_at")),
            updated_at=_parse_datetime(row.get("updated_at")),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTemplateError(f"malformed recurring task row: {exc}") from exc


def task_from_json(row: dict[str, Any]) -> Task:
    return Task(
        id=str(row["id"]),
        title=str(row.get("title") or ""),
        description=row.get("description"),
        project_id=row.get("project_id"),
        priority=int(row.get("priority", 5)),
        status=TaskStatus.from_db(row.get("status")),
        deadline=_parse_datetime(row.get("deadline")),
        created_at=_parse_datetime(row.get("created_at")),
    )


class RestRecurringTaskStore:
    """
    httpx-based store.

    Auth follows the hosted-Postgres convention: the API key is sent both as
    `apikey` and as a bearer token.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url is required")
        if not api_key or not api_key.strip():
            raise ValueError("api_key is required")

        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        rest_url = base_url.rstrip("/") + "/rest/v1"
        if client is None:
            client = httpx.Client(
                base_url=rest_url,
                headers=headers,
                timeout=httpx.Timeout(timeout_seconds, connect=min(5.0, timeout_seconds)),
            )
        else:
            client.base_url = httpx.URL(rest_url)
            client.headers.update(headers)
        self._client = client
        logger.info("RestRecurringTaskStore ready url=%s", rest_url)

    def close(self) -> None:
        self._client.close()

    # ---- low-level helpers ----

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code == 409 and path == "/generated_tasks":
            raise DuplicateGenerationError(resp.text)
        if resp.is_error:
            raise StoreError(f"{method} {path} -> HTTP {resp.status_code}: {resp.text}")

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"{method} {path} returned invalid JSON") from exc

    def _rows_to_templates(self, rows: Any) -> list[RecurringTask]:
        out: list[RecurringTask] = []
        for row in rows or []:
            try:
                out.append(template_from_json(row))
            except InvalidTemplateError:
                logger.warning("Skipping malformed recurring task id=%s", row.get("id"), exc_info=True)
        return out

    # ---- generation API ----

    def list_active_recurring_tasks(self, *, as_of: date) -> list[RecurringTask]:
        day = as_of.isoformat()
        rows = self._request(
            "GET",
            "/recurring_tasks",
            params={
                "select": "*",
                "is_active": "eq.true",
                "or": f"(next_generation_at.is.null,next_generation_at.lte.{day})",
            },
        )
        return self._rows_to_templates(rows)

    def list_generated_records(
        self,
        recurring_task_id: str,
        *,
        since: datetime,
    ) -> list[GeneratedTaskRecord]:
        rows = self._request(
            "GET",
            "/generated_tasks",
            params={
                "select": "*",
                "recurring_task_id": f"eq.{recurring_task_id}",
                "generated_at": f"gte.{since.isoformat()}",
            },
        )
        return [
            GeneratedTaskRecord(
                id=str(r.get("id", "")),
                recurring_task_id=str(r["recurring_task_id"]),
                task_id=str(r["task_id"]),
                generated_at=_parse_datetime(r.get("generated_at")) or since,
            )
            for r in rows or []
        ]

    def insert_task(self, task: NewTask) -> Task:
        payload = {
            "title": task.title,
            "description": task.description,
            "project_id": task.project_id,
            "priority": task.priority,
            "status": task.status.value,
            "deadline": _json_value(task.deadline),
        }
        rows = self._request("POST", "/tasks", json=payload, prefer="return=representation")
        if not rows:
            raise StoreError("POST /tasks returned no row")
        return task_from_json(rows[0])

    def insert_generated_record(
        self,
        recurring_task_id: str,
        task_id: str,
        *,
        generated_at: datetime,
    ) -> None:
        self._request(
            "POST",
            "/generated_tasks",
            json={
                "recurring_task_id": recurring_task_id,
                "task_id": task_id,
                "generated_at": generated_at.isoformat(),
            },
            prefer="return=minimal",
        )

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

    # ---- management API ----

    def add_recurring_task(self, template: RecurringTask) -> str:
        payload = {
            "title": template.title,
            "description": template.description,
            "project_id": template.project_id,
            "priority": template.priority,
            "recurrence_type": template.recurrence_type.value,
            "recurrence_interval": template.recurrence_interval,
            "week_days": list(template.week_days) if template.week_days else None,
            "month_day": template.month_day,
            "is_active": template.is_active,
            "last_generated_at": _json_value(template.last_generated_at),
            "next_generation_at": _json_value(template.next_generation_at),
        }
        if template.id:
            payload["id"] = template.id
        rows = self._request(
            "POST", "/recurring_tasks", json=payload, prefer="return=representation"
        )
        if not rows:
            raise StoreError("POST /recurring_tasks returned no row")
        return str(rows[0]["id"])

    def get_recurring_task(self, recurring_task_id: str) -> RecurringTask | None:
        rows = self._request(
            "GET",
            "/recurring_tasks",
            params={"select": "*", "id": f"eq.{recurring_task_id}"},
        )
        return template_from_json(rows[0]) if rows else None

    def list_recurring_tasks(self) -> list[RecurringTask]:
        rows = self._request(
            "GET",
            "/recurring_tasks",
            params={"select": "*", "order": "created_at.desc"},
        )
        return self._rows_to_templates(rows)

    def update_recurring_task_fields(self, recurring_task_id: str, fields: dict[str, Any]) -> None:
        if not fields:
            return
        self._request(
            "PATCH",
            "/recurring_tasks",
            params={"id": f"eq.{recurring_task_id}"},
            json={k: _json_value(v) for k, v in fields.items()},
        )

    def delete_recurring_task(self, recurring_task_id: str) -> None:
        self._request(
            "DELETE",
            "/recurring_tasks",
            params={"id": f"eq.{recurring_task_id}"},
        )
