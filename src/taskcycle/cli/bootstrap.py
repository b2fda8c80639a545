# src/taskcycle/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- builds the configured store (SQLite file or REST backend).
"""

from __future__ import annotations

import logging

from ..config import STORE_REST, Settings, get_settings
from ..recurring.rest_store import RestRecurringTaskStore
from ..recurring.store import RecurringTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.log_dir.mkdir(parents=True, exist_ok=True)


def create_store(*, settings: Settings | None = None) -> RecurringTaskStore | RestRecurringTaskStore:
    """
    Create the store selected by settings.store.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if settings.store == STORE_REST:
        if not settings.rest_url or not settings.rest_api_key:
            raise RuntimeError(
                "REST store selected but TASKCYCLE_REST_URL / TASKCYCLE_REST_API_KEY are not set."
            )
        return RestRecurringTaskStore(
            settings.rest_url,
            settings.rest_api_key,
            timeout_seconds=settings.rest_timeout_seconds,
        )

    return RecurringTaskStore(settings.db_path)
