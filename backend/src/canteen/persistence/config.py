"""Storage location settings and the adapter factory."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy.engine import URL, make_url

if TYPE_CHECKING:
    from canteen.persistence.adapter import PersistenceAdapter

MEMORY_URL = "memory:"

# Async driver per backend, keyed by the URL's backend name
ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgresql": "postgresql+psycopg",
}


@dataclass(frozen=True)
class DatabaseConfig:
    """Where entity tables live.

    ``url`` is a SQLAlchemy-style URL (``sqlite:///path``,
    ``sqlite:///:memory:``, ``postgresql://user@host/db``) or ``memory:``
    for the dictionary-backed adapter.
    """

    url: str

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> DatabaseConfig:
        """Read the database location from the environment.

        DATABASE_URL wins; CANTEEN_DB_PATH names a SQLite file; otherwise
        the SQLite file ``data/canteen.db`` under ``base_path`` is used.
        """
        url = os.environ.get("DATABASE_URL")
        if url:
            return cls(url=url)

        db_path = os.environ.get("CANTEEN_DB_PATH")
        if db_path:
            return cls(url=f"sqlite:///{db_path}")

        root = base_path or Path.cwd()
        return cls(url=f"sqlite:///{root / 'data' / 'canteen.db'}")

    @property
    def backend(self) -> str | None:
        """Backend name without driver, e.g. "sqlite"; None for memory or garbage."""
        if self.url.startswith(MEMORY_URL):
            return None
        return self.url.split(":", 1)[0].split("+", 1)[0]

    @property
    def is_sqlite(self) -> bool:
        return self.backend == "sqlite"

    @property
    def is_postgresql(self) -> bool:
        return self.backend == "postgresql"

    def _parsed(self) -> URL:
        return make_url(self.url)

    @property
    def sqlite_path(self) -> str | None:
        """Filesystem path of a SQLite database, None for memory or non-SQLite."""
        if not self.is_sqlite:
            return None
        database = self._parsed().database
        if not database or database == ":memory:":
            return None
        return database

    @property
    def sqlalchemy_url(self) -> str:
        """The URL rewritten to the async driver for its backend."""
        driver = ASYNC_DRIVERS.get(self.backend or "")
        if driver is None:
            return self.url
        url = self._parsed().set(drivername=driver)
        return url.render_as_string(hide_password=False)


def create_adapter(config: DatabaseConfig) -> PersistenceAdapter:
    """Build the adapter for a database URL. The adapter is not connected yet.

    Raises:
        ValueError: the URL names an unsupported backend
    """
    if config.url.startswith(MEMORY_URL):
        from canteen.persistence.memory import MemoryAdapter

        return MemoryAdapter()

    if config.backend in ASYNC_DRIVERS:
        from canteen.persistence.sql import SQLAlchemyAdapter

        return SQLAlchemyAdapter(config)

    raise ValueError(f"Unsupported database URL scheme: {config.url}")
