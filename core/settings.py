"""Centralized application configuration."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional
import os
import sys


def get_default_data_dir(
    app_name: str,
    *,
    platform: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Path:
    """Return an OS-specific user data directory for ``app_name``."""

    platform_id = (platform or sys.platform).lower()
    environ = dict(env or os.environ)
    home_dir = Path(home or Path.home())
    sanitized = app_name.strip() or "app"
    sanitized = sanitized.replace("/", "-").replace("\\", "-")

    if platform_id.startswith("win"):
        base = Path(environ.get("APPDATA") or home_dir / "AppData" / "Roaming")
    elif platform_id == "darwin":
        base = Path(environ.get("APPDATA") or home_dir / "Library" / "Application Support")
    else:
        base = Path(environ.get("XDG_DATA_HOME") or home_dir / ".local" / "share")

    return (base.expanduser() / sanitized)


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: str) -> tuple[str, ...]:
    raw = os.environ.get(name, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


APP_NAME = "TaskSync"


DATA_DIR = Path(os.environ.get("TASKSYNC_DATA_DIR") or get_default_data_dir(APP_NAME))
STORAGE_DIR = DATA_DIR / "storage"
LOG_DIR = DATA_DIR / "logs"

for _dir in (DATA_DIR, STORAGE_DIR, LOG_DIR):
    _dir.mkdir(parents=True, exist_ok=True)


DB_PATH = Path(os.environ.get("TASKSYNC_DB_PATH") or DATA_DIR / "client.db")
SERVER_DB_PATH = Path(os.environ.get("TASKSYNC_SERVER_DB_PATH") or DATA_DIR / "server.db")
SYNC_STATE_PATH = STORAGE_DIR / "sync_state.json"


@dataclass(frozen=True)
class SyncSettings:
    api_url: str = os.environ.get("TASKSYNC_API_URL", "http://localhost:8000/api")
    health_timeout_sec: float = _env_float("TASKSYNC_HEALTH_TIMEOUT", 5.0)
    batch_timeout_sec: float = _env_float("TASKSYNC_BATCH_TIMEOUT", 30.0)
    auto_sync_interval_sec: int = _env_int("TASKSYNC_SYNC_INTERVAL", 60)
    state_path: Path = SYNC_STATE_PATH
    max_error_length: int = 1000


SYNC = SyncSettings()


@dataclass(frozen=True)
class ServerSettings:
    host: str = os.environ.get("TASKSYNC_HOST", "0.0.0.0")
    port: int = _env_int("TASKSYNC_PORT", 8000)
    db_path: Path = SERVER_DB_PATH
    api_prefix: str = "/api"
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:3000")
    )


SERVER = ServerSettings()


@dataclass(frozen=True)
class LoggingSettings:
    directory: Path = LOG_DIR
    level: str = os.environ.get("TASKSYNC_LOG_LEVEL", "INFO")
    max_bytes: int = 1_000_000
    backup_count: int = 3


LOGGING = LoggingSettings()


__all__ = [
    "APP_NAME",
    "DATA_DIR",
    "STORAGE_DIR",
    "LOG_DIR",
    "DB_PATH",
    "SERVER_DB_PATH",
    "SYNC_STATE_PATH",
    "SYNC",
    "SERVER",
    "LOGGING",
    "get_default_data_dir",
]
