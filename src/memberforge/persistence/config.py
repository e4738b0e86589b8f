"""Storage location and repository factory."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from memberforge.persistence.sqlite import SQLiteRepository, TableSpec

logger = logging.getLogger(__name__)

SQLITE_SCHEME = "sqlite:///"
DEFAULT_DB_NAME = "memberforge.db"
MEMORY = ":memory:"


@dataclass
class DatabaseConfig:
    """Where records are stored. Only sqlite:/// URLs are accepted."""

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> "DatabaseConfig":
        """Resolve the database URL.

        DATABASE_URL wins; MEMBERFORGE_DB_PATH is a plain file path; otherwise
        the database lives in {base_path}/data/, or the working directory.
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)
        db_path = os.environ.get("MEMBERFORGE_DB_PATH")
        if db_path:
            return cls(url=SQLITE_SCHEME + db_path)
        if base_path:
            return cls(url=SQLITE_SCHEME + str(base_path / "data" / DEFAULT_DB_NAME))
        return cls(url=SQLITE_SCHEME + DEFAULT_DB_NAME)

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def sqlite_path(self) -> str:
        """File path of a sqlite URL, ':memory:' when empty."""
        return self.url.replace(SQLITE_SCHEME, "", 1) or MEMORY


def create_repository(config: DatabaseConfig, table: TableSpec) -> SQLiteRepository:
    """Build an unconnected repository for `table`.

    Raises:
        ValueError: The URL is not a sqlite URL
    """
    if not config.is_sqlite:
        raise ValueError(f"Unsupported database URL scheme: {config.url}")

    db_path = config.sqlite_path
    if db_path != MEMORY:
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Using %s storage at %s", table.name, db_path)
    return SQLiteRepository(table, db_path)
