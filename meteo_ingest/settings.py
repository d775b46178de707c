"""Configuration for the ingest loop.

Sources, lowest precedence first:
- appsettings.json in the app root: {"DataSource": {"SourceUrl": ..., "PollIntervalMinutes": ...}}
- .env (python-dotenv, never overrides real env vars)
- environment variables
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger("settings")

DEFAULT_APP_ROOT = Path(__file__).resolve().parent
DEFAULT_POLL_INTERVAL_MINUTES = 60
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
APPSETTINGS_NAME = "appsettings.json"

# (env var, default shown in .env.template, description); load_config reads exactly these
ENV_SETTINGS = (
    ("SOURCE_URL", "", "URL of the XML document to poll (required)"),
    ("POLL_INTERVAL_MINUTES", str(DEFAULT_POLL_INTERVAL_MINUTES), "minutes between cycles, minimum 1"),
    ("START_RUNNING", "false", "start polling without waiting for the 'start' command"),
    ("HTTP_TIMEOUT_SECONDS", str(int(DEFAULT_HTTP_TIMEOUT_SECONDS)), "request timeout"),
    ("SNAPSHOT_PATH", "", "latest JSON snapshot, default <app root>/data.json"),
    ("INGEST_DB_PATH", "", "SQLite history, default <app root>/ingest.sqlite"),
    ("LOG_LEVEL", "INFO", "DEBUG, INFO, WARNING, ..."),
    ("APP_ROOT", "", "directory holding appsettings.json and the default output files"),
)


class ConfigError(RuntimeError):
    pass


@dataclass(frozen=True)
class IngestConfig:
    source_url: str
    snapshot_path: Path
    db_path: Path

    poll_interval_minutes: int = DEFAULT_POLL_INTERVAL_MINUTES
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    start_running: bool = False
    log_level: str = "INFO"

    @property
    def interval_seconds(self) -> float:
        return float(self.poll_interval_minutes * 60)


def _env_bool(name: str, default: bool = False) -> bool:
    v = (os.getenv(name) or "").strip().lower()
    if not v:
        return default
    return v in ("1", "true", "yes", "y", "on")


def _as_int(v: Any, default: int) -> int:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        return int(float(v))
    except Exception:
        return default


def _as_float(v: Any, default: float) -> float:
    if v is None or (isinstance(v, str) and not v.strip()):
        return default
    try:
        return float(v)
    except Exception:
        return default


def _read_appsettings(app_root: Path) -> Dict[str, Any]:
    path = app_root / APPSETTINGS_NAME
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"could not read {path}: {e}") from e
    section = data.get("DataSource") if isinstance(data, dict) else None
    return section if isinstance(section, dict) else {}


def load_config(app_root: Optional[str | Path] = None) -> IngestConfig:
    load_dotenv(override=False)

    root = Path(app_root or os.getenv("APP_ROOT") or DEFAULT_APP_ROOT).resolve()
    file_cfg = _read_appsettings(root)

    source_url = (os.getenv("SOURCE_URL") or str(file_cfg.get("SourceUrl") or "")).strip()
    if not source_url:
        raise ConfigError("Missing required setting: SOURCE_URL (or DataSource:SourceUrl in appsettings.json)")

    interval = _as_int(
        os.getenv("POLL_INTERVAL_MINUTES") or file_cfg.get("PollIntervalMinutes"),
        DEFAULT_POLL_INTERVAL_MINUTES,
    )
    if interval < 1:
        logger.warning("poll interval %s min is below the minimum, using 1 min", interval)
        interval = 1

    timeout = _as_float(os.getenv("HTTP_TIMEOUT_SECONDS"), DEFAULT_HTTP_TIMEOUT_SECONDS)
    if timeout <= 0:
        timeout = DEFAULT_HTTP_TIMEOUT_SECONDS

    return IngestConfig(
        source_url=source_url,
        snapshot_path=Path(os.getenv("SNAPSHOT_PATH") or root / "data.json"),
        db_path=Path(os.getenv("INGEST_DB_PATH") or root / "ingest.sqlite"),
        poll_interval_minutes=interval,
        http_timeout_seconds=timeout,
        start_running=_env_bool("START_RUNNING", False),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").strip().upper(),
    )
