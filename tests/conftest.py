# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskcycle.recurring.store import RecurringTaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap code.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskcycle-test",
        log_level="DEBUG",
        data_dir=tmp_path,
        db_path=tmp_path / "taskcycle.sqlite3",
        log_dir=tmp_path / "logs",
        store="sqlite",
        rest_url="",
        rest_api_key=None,
        rest_timeout_seconds=1.0,
        scheduler_interval_seconds=0.01,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> RecurringTaskStore:
    """
    Real SQLite store in a tmp directory: its queries and constraints are part
    of what we want to test.
    """
    return RecurringTaskStore(settings.db_path)
