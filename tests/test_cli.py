# tests/test_cli.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskcycle import config
from taskcycle.cli import main as cli_main


@pytest.fixture()
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("TASKCYCLE_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("TASKCYCLE_STORE", "sqlite")
    monkeypatch.delenv("TASKCYCLE_DB_PATH", raising=False)
    monkeypatch.delenv("TASKCYCLE_LOG_DIR", raising=False)
    monkeypatch.setattr(config, "_SETTINGS", None)
    # Keep pytest's own log capture intact.
    monkeypatch.setattr(cli_main, "setup_logging", lambda **_: None)
    return tmp_path


def test_add_list_run(cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli_main.main(["add", "--title", "Weekly sync", "--type", "weekly", "--week-days", "1,3,5"]) == 0
    template_id = capsys.readouterr().out.strip()
    assert template_id

    assert cli_main.main(["list"]) == 0
    out = capsys.readouterr().out
    assert "Weekly sync" in out
    assert "Weekly on Mon, Wed, Fri" in out

    # 2099-01-05 is a Monday.
    assert cli_main.main(["run", "--date", "2099-01-05"]) == 0
    assert "generated 1" in capsys.readouterr().out

    assert cli_main.main(["run", "--date", "2099-01-05"]) == 0
    assert "generated 0" in capsys.readouterr().out

    assert cli_main.main(["preview", template_id, "--from", "2099-01-06", "--count", "2"]) == 0
    assert capsys.readouterr().out.split() == ["2099-01-07", "2099-01-09"]


def test_invalid_template_exits_with_error(cli_env: Path) -> None:
    assert cli_main.main(["add", "--title", "x", "--type", "monthly"]) == 1


def test_toggle_unknown_id(cli_env: Path) -> None:
    assert cli_main.main(["toggle", "nope"]) == 1
