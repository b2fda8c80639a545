# src/taskcycle/recurring/scheduler.py

from __future__ import annotations

"""
Recurring task scheduler.

A small polling loop that runs one generation pass per tick. A pass is a no-op
for templates already generated today, so ticking more often than once a day is
safe as long as only one scheduler runs against a store.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from ..core.ports import RecurringTaskRepo
from .generator import generate_tasks_from_recurring
from .models import FetchError, GenerationSummary

logger = logging.getLogger(__name__)


async def run_recurring_scheduler(
        repo: RecurringTaskRepo,
        *,
        interval_seconds: float = 300.0,
        clock: Callable[[], datetime] = datetime.now,
        on_pass: Callable[[GenerationSummary], None] | None = None,
) -> None:
    """
    Every interval_seconds:
    - read "now" from clock (once per pass)
    - run generate_tasks_from_recurring(repo, now=now)
    - a FetchError is logged and the next tick retries

    To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        now = clock()
        try:
            summary = generate_tasks_from_recurring(repo, now=now)
        except FetchError:
            logger.warning("Generation pass skipped at %s; will retry next tick", now.isoformat())
        else:
            if on_pass is not None:
                try:
                    on_pass(summary)
                except Exception:
                    logger.exception("on_pass callback failed")

        await asyncio.sleep(sleep_s)
