"""Environment-driven settings for the dashboard engine and backend."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .constants import EXPORT_MAX_ROWS, PAGE_SIZE, SEARCH_DEBOUNCE_SECONDS

_ENV_PREFIX = "TICKETDASH_"
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(f"{_ENV_PREFIX}{name}")
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning("Ignoring non-integer %s%s=%r", _ENV_PREFIX, name, raw)
        return default


def _env_path(name: str) -> Path | None:
    raw = _env(name)
    return Path(raw) if raw else None


@dataclass(frozen=True)
class DashboardSettings:
    api_base_url: str = "http://localhost:8000"
    page_size: int = PAGE_SIZE
    search_debounce_seconds: float = SEARCH_DEBOUNCE_SECONDS
    export_limit: int = EXPORT_MAX_ROWS
    request_timeout: float = 30.0
    data_path: Path | None = None
    snapshot_dir: Path | None = None
    export_dir: Path = Path("exports")
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "DashboardSettings":
        return cls(
            api_base_url=_env("API_BASE_URL", cls.api_base_url) or cls.api_base_url,
            page_size=_env_int("PAGE_SIZE", PAGE_SIZE),
            search_debounce_seconds=_env_int("SEARCH_DEBOUNCE_MS", int(SEARCH_DEBOUNCE_SECONDS * 1000)) / 1000.0,
            export_limit=min(_env_int("EXPORT_LIMIT", EXPORT_MAX_ROWS), EXPORT_MAX_ROWS),
            request_timeout=float(_env_int("REQUEST_TIMEOUT", 30)),
            data_path=_env_path("DATA_PATH"),
            snapshot_dir=_env_path("SNAPSHOT_DIR"),
            export_dir=_env_path("EXPORT_DIR") or Path("exports"),
            log_level=(_env("LOG_LEVEL", "INFO") or "INFO").upper(),
        )


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=_LOG_FORMAT)
    else:
        root.setLevel(level)
