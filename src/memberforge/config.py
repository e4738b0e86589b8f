"""Runtime settings read from the environment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from memberforge.cache import DEFAULT_MAX_ENTRIES
from memberforge.entities import MAX_PAGE_SIZE, READ_RETRIES
from memberforge.persistence import DatabaseConfig

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


@dataclass
class Settings:
    """Service settings.

    Environment variables:
        DATABASE_URL / MEMBERFORGE_DB_PATH: storage location (see DatabaseConfig)
        MEMBERFORGE_LOG_LEVEL: logging level name (default INFO)
        MEMBERFORGE_MAX_PAGE_SIZE: list page size ceiling, never above 100
        MEMBERFORGE_READ_RETRIES: extra attempts for failed storage reads
        MEMBERFORGE_CACHE_SIZE: maximum cached entries
        MEMBERFORGE_PORT: port for `memberforge serve`
    """

    database: DatabaseConfig
    log_level: str = "INFO"
    max_page_size: int = MAX_PAGE_SIZE
    read_retries: int = READ_RETRIES
    cache_size: int = DEFAULT_MAX_ENTRIES
    port: int = 8000

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> "Settings":
        return cls(
            database=DatabaseConfig.from_env(base_path),
            log_level=os.environ.get("MEMBERFORGE_LOG_LEVEL", "INFO").upper(),
            max_page_size=max(1, min(_env_int("MEMBERFORGE_MAX_PAGE_SIZE", MAX_PAGE_SIZE), MAX_PAGE_SIZE)),
            read_retries=max(0, _env_int("MEMBERFORGE_READ_RETRIES", READ_RETRIES)),
            cache_size=max(1, _env_int("MEMBERFORGE_CACHE_SIZE", DEFAULT_MAX_ENTRIES)),
            port=_env_int("MEMBERFORGE_PORT", 8000),
        )


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
