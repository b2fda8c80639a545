# src/taskcycle/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the store, then runs one sub-command:
- run:     one generation pass (for cron)
- serve:   polling scheduler until Ctrl+C / SIGTERM
- add, list, toggle, delete, preview: template management
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from datetime import date

from ..cli.bootstrap import create_store
from ..config import Settings, get_settings
from ..logging_setup import setup_logging
from ..recurring.api import create_recurring_task, delete_recurring_task, preview_next_dates, toggle_active
from ..recurring.generator import generate_tasks_from_recurring
from ..recurring.models import RecurrenceType, TaskCycleError
from ..recurring.rules import describe_recurrence
from ..recurring.scheduler import run_recurring_scheduler

logger = logging.getLogger(__name__)


def _parse_day(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {raw!r}") from None


def _parse_week_days(raw: str) -> list[int]:
    try:
        return [int(p) for p in raw.replace(",", " ").split()]
    except ValueError:
        raise argparse.ArgumentTypeError("week days are numbers 0..6 (0=Sunday), e.g. 1,3,5") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskcycle", description="Recurring task generator.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_run = sub.add_parser("run", help="Run one generation pass.")
    p_run.add_argument("--date", type=_parse_day, default=None, help="Treat this day as today.")

    p_serve = sub.add_parser("serve", help="Run the polling scheduler.")
    p_serve.add_argument("--interval", type=float, default=None, help="Seconds between passes.")

    p_add = sub.add_parser("add", help="Create a recurring task template.")
    p_add.add_argument("--title", required=True)
    p_add.add_argument("--type", dest="recurrence_type", required=True, choices=[t.value for t in RecurrenceType])
    p_add.add_argument("--interval", type=int, default=1)
    p_add.add_argument("--week-days", type=_parse_week_days, default=None)
    p_add.add_argument("--month-day", type=int, default=None)
    p_add.add_argument("--priority", type=int, default=5)
    p_add.add_argument("--description", default=None)
    p_add.add_argument("--project-id", default=None)

    sub.add_parser("list", help="List recurring task templates.")

    p_toggle = sub.add_parser("toggle", help="Activate/deactivate a template.")
    p_toggle.add_argument("id")

    p_delete = sub.add_parser("delete", help="Delete a template.")
    p_delete.add_argument("id")

    p_preview = sub.add_parser("preview", help="Show upcoming generation days of a template.")
    p_preview.add_argument("id")
    p_preview.add_argument("--count", type=int, default=5)
    p_preview.add_argument("--from", dest="start", type=_parse_day, default=None)

    return parser


async def _serve(store, interval_seconds: float) -> None:
    runner = asyncio.create_task(run_recurring_scheduler(store, interval_seconds=interval_seconds))

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # Some platforms may not support add_signal_handler.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, runner.cancel)

    with contextlib.suppress(asyncio.CancelledError):
        await runner


def _dispatch(args: argparse.Namespace, settings: Settings, store) -> int:
    cmd = args.command

    if cmd == "run":
        summary = generate_tasks_from_recurring(store, today=args.date)
        print(
            f"{summary.today.isoformat()}: generated {len(summary.generated)}, "
            f"already generated {len(summary.already_generated)}, failed {len(summary.failed)}"
        )
        return 1 if summary.failed else 0

    if cmd == "serve":
        interval = args.interval if args.interval is not None else settings.scheduler_interval_seconds
        logger.info("Scheduler started (interval=%ss). Press Ctrl+C to stop.", interval)
        asyncio.run(_serve(store, interval))
        return 0

    if cmd == "add":
        template_id = create_recurring_task(
            store,
            title=args.title,
            recurrence_type=args.recurrence_type,
            today=date.today(),
            description=args.description,
            project_id=args.project_id,
            priority=args.priority,
            recurrence_interval=args.interval,
            week_days=args.week_days,
            month_day=args.month_day,
        )
        print(template_id)
        return 0

    if cmd == "list":
        for t in store.list_recurring_tasks():
            state = "active" if t.is_active else "inactive"
            nxt = t.next_generation_at.isoformat() if t.next_generation_at else "-"
            print(f"{t.id}  [{state}]  {t.title}  ({describe_recurrence(t)}; next {nxt})")
        return 0

    if cmd == "toggle":
        active = toggle_active(store, args.id)
        print("active" if active else "inactive")
        return 0

    if cmd == "delete":
        delete_recurring_task(store, args.id)
        return 0

    if cmd == "preview":
        template = store.get_recurring_task(args.id)
        if template is None:
            print(f"No recurring task {args.id}")
            return 1
        for day in preview_next_dates(template, args.start or date.today(), args.count):
            print(day.isoformat())
        return 0

    raise AssertionError(f"unhandled command {cmd}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    try:
        store = create_store(settings=settings)
    except (TaskCycleError, RuntimeError, ValueError) as exc:
        logger.error("Cannot open store: %s", exc)
        return 1

    try:
        return _dispatch(args, settings, store)
    except KeyError as exc:
        logger.error("No recurring task %s", exc)
        return 1
    except TaskCycleError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        close = getattr(store, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":
    raise SystemExit(main())
