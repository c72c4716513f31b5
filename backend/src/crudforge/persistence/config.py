"""Where the entity tables live, and the adapter that serves them."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from crudforge.persistence.adapter import PersistenceAdapter

SQLITE_SCHEME = "sqlite:///"
MEMORY = ":memory:"
DEFAULT_FILENAME = "crudforge.db"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database location as a ``sqlite:///<path>`` URL.

    An empty path means an in-memory database.
    """

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """DATABASE_URL, then CRUDFORGE_DB_PATH, then ``<base>/data/crudforge.db``."""
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        path = os.environ.get("CRUDFORGE_DB_PATH")
        if not path:
            path = str(base_path / "data" / DEFAULT_FILENAME) if base_path else DEFAULT_FILENAME
        return cls.for_path(path)

    @classmethod
    def for_path(cls, path: Path | str) -> DatabaseConfig:
        return cls(url=f"{SQLITE_SCHEME}{path}")

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith(SQLITE_SCHEME)

    @property
    def sqlite_path(self) -> str:
        return self.url[len(SQLITE_SCHEME):] or MEMORY

    @property
    def is_memory(self) -> bool:
        return self.sqlite_path == MEMORY

    def prepare(self) -> None:
        """Create the directory a file database will be written to."""
        if not self.is_memory:
            Path(self.sqlite_path).parent.mkdir(parents=True, exist_ok=True)


def create_adapter(config: DatabaseConfig) -> PersistenceAdapter:
    """Build an unconnected adapter for the configured database.

    Raises:
        ValueError: The URL is not a sqlite:/// URL
    """
    if not config.is_sqlite:
        raise ValueError(f"Unsupported database URL scheme: {config.url}")

    from crudforge.persistence.sqlite import SQLiteAdapter

    config.prepare()
    return SQLiteAdapter(config.sqlite_path)
