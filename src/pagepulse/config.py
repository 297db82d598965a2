"""Runtime settings for pagepulse."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

DEFAULT_API_PREFIX = "/api/metrics"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True, slots=True)
class Settings:
    db_path: str = "pagepulse.db"
    default_page_size: int = 50
    max_page_size: int = 200
    slow_query_ms: float = 50.0
    retention_days: float = 30.0
    api_prefix: str = DEFAULT_API_PREFIX
    exclude_paths: list[str] = field(default_factory=lambda: [f"{DEFAULT_API_PREFIX}/*"])
    log_level: str = "INFO"

    @property
    def retention_seconds(self) -> float | None:
        """Retention window in seconds, None when retention is disabled."""
        if self.retention_days <= 0:
            return None
        return self.retention_days * 86400


def load_settings() -> Settings:
    api_prefix = os.getenv("PAGEPULSE_API_PREFIX", DEFAULT_API_PREFIX).rstrip("/")
    max_page_size = max(1, _env_int("PAGEPULSE_MAX_PAGE_SIZE", 200))
    return Settings(
        db_path=os.getenv("PAGEPULSE_DB_PATH", "pagepulse.db"),
        default_page_size=min(
            max(1, _env_int("PAGEPULSE_DEFAULT_PAGE_SIZE", 50)), max_page_size
        ),
        max_page_size=max_page_size,
        slow_query_ms=_env_float("PAGEPULSE_SLOW_QUERY_MS", 50.0),
        retention_days=_env_float("PAGEPULSE_RETENTION_DAYS", 30.0),
        api_prefix=api_prefix,
        exclude_paths=_env_list("PAGEPULSE_EXCLUDE_PATHS", [f"{api_prefix}/*"]),
        log_level=os.getenv("PAGEPULSE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Install a stream handler on the ``pagepulse`` logger."""
    logger = logging.getLogger("pagepulse")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
