# tests/test_logging_setup.py

from __future__ import annotations

import logging

from taskcycle.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


def test_console_filter_levels() -> None:
    f = _ConsoleNoiseFilter()

    assert f.filter(_record("taskcycle.recurring.generator", logging.DEBUG))
    assert f.filter(_record("taskcycle", logging.INFO))

    assert f.filter(_record("py.warnings", logging.WARNING))
    assert not f.filter(_record("py.warnings", logging.INFO))

    assert not f.filter(_record("httpx", logging.WARNING))
    assert f.filter(_record("httpx", logging.ERROR))
