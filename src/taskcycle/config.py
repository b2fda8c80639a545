# src/taskcycle/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKCYCLE"

STORE_SQLITE = "sqlite"
STORE_REST = "rest"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path
    log_dir: Path

    # ---- Store ----
    store: str  # "sqlite" | "rest"
    rest_url: str
    rest_api_key: str | None
    rest_timeout_seconds: float

    # ---- Scheduler ----
    scheduler_interval_seconds: float

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskcycle") or "taskcycle"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskcycle"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskcycle.sqlite3")
        log_dir = _env_path(_k("LOG_DIR"), data_dir)

        store = _env(_k("STORE"), STORE_SQLITE).strip().lower()
        if store not in (STORE_SQLITE, STORE_REST):
            store = STORE_SQLITE

        # Accept the hosted backend's usual variable names as a fallback.
        rest_url = (_first_env(_k("REST_URL"), "SUPABASE_URL", default="") or "").strip()
        rest_api_key = _first_env(_k("REST_API_KEY"), "SUPABASE_KEY", default=None)
        rest_timeout_seconds = _env_float(_k("REST_TIMEOUT_SECONDS"), 10.0)

        scheduler_interval_seconds = _env_float(_k("SCHEDULER_INTERVAL_SECONDS"), 300.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            log_dir=log_dir,
            store=store,
            rest_url=rest_url,
            rest_api_key=rest_api_key,
            rest_timeout_seconds=rest_timeout_seconds,
            scheduler_interval_seconds=scheduler_interval_seconds,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings; .env is read on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        load_dotenv(override=False)
        _SETTINGS = Settings.from_env()
    return _SETTINGS
