"""SQL persistence adapter.

Uses SQLAlchemy Core on an async engine, with aiosqlite for SQLite and
psycopg v3 for PostgreSQL. Tables are defined from entity schemas by
``canteen.persistence.tables`` and statements are built with Core
constructs, so identifiers are quoted and values are always bound.

Every public call runs in its own transaction. Driver errors are
re-raised as StorageError without leaking SQL or parameters.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from canteen.errors import StorageError
from canteen.metadata.loader import EntitySchema
from canteen.persistence.adapter import Sort
from canteen.persistence.config import DatabaseConfig
from canteen.persistence.tables import build_table, is_valid_id, to_storage

logger = logging.getLogger(__name__)


class SQLAlchemyAdapter:
    """Persistence adapter for SQLite and PostgreSQL."""

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self.engine: AsyncEngine | None = None
        self.metadata = sa.MetaData()
        self._tables: dict[str, sa.Table] = {}

    async def connect(self) -> None:
        """Create the engine. Connections are opened per call."""
        kwargs: dict[str, Any] = {}
        if self.config.is_sqlite and self.config.sqlite_path is None:
            # One shared connection, otherwise every call sees a fresh empty database
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        elif self.config.is_sqlite:
            Path(self.config.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

        self.engine = create_async_engine(self.config.sqlalchemy_url, **kwargs)
        logger.info("Connected to %s database", "SQLite" if self.config.is_sqlite else "PostgreSQL")

    async def close(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _begin(self) -> AsyncIterator[AsyncConnection]:
        if self.engine is None:
            raise RuntimeError("Database not connected")
        try:
            async with self.engine.begin() as conn:
                yield conn
        except IntegrityError as exc:
            logger.warning("Constraint violation: %s", exc.orig)
            raise StorageError("Constraint violation") from exc
        except SQLAlchemyError as exc:
            logger.error("Database error: %s", exc.__class__.__name__)
            raise StorageError("Database error") from exc

    def _table(self, schema: EntitySchema) -> sa.Table:
        table = self._tables.get(schema.name)
        if table is None:
            table = build_table(schema, self.metadata)
            self._tables[schema.name] = table
        return table

    @staticmethod
    def _column(table: sa.Table, name: str) -> sa.Column:
        if name not in table.c:
            raise ValueError(f"Unknown column '{name}' on table '{table.name}'")
        return table.c[name]

    async def _fetch(self, conn: AsyncConnection, table: sa.Table, id: str) -> dict[str, Any] | None:
        result = await conn.execute(sa.select(table).where(table.c.id == id))
        row = result.mappings().first()
        return dict(row) if row else None

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    async def materialize(self, schema: EntitySchema) -> None:
        """Create the entity's table and indexes if they do not exist.

        Existing tables are left untouched, including columns declared
        after the table was first created.
        """
        table = self._table(schema)
        async with self._begin() as conn:
            await conn.run_sync(table.create, checkfirst=True)
            for index in sorted(table.indexes, key=lambda i: i.name):
                await conn.run_sync(index.create, checkfirst=True)
        logger.info("Materialized table %s for entity %s", schema.table_name, schema.name)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def insert(self, schema: EntitySchema, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored."""
        table = self._table(schema)
        values = self._values(table, schema, row)
        async with self._begin() as conn:
            await conn.execute(sa.insert(table).values(**values))
            stored = await self._fetch(conn, table, row["id"])
        return stored  # type: ignore[return-value]

    async def insert_many(
        self, schema: EntitySchema, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert rows in a single transaction; all or none are stored."""
        if not rows:
            return []
        table = self._table(schema)
        stored: list[dict[str, Any]] = []
        async with self._begin() as conn:
            for row in rows:
                await conn.execute(sa.insert(table).values(**self._values(table, schema, row)))
            for row in rows:
                stored.append(await self._fetch(conn, table, row["id"]))  # type: ignore[arg-type]
        return stored

    async def get(self, schema: EntitySchema, id: str) -> dict[str, Any] | None:
        if not is_valid_id(id):
            return None
        table = self._table(schema)
        async with self._begin() as conn:
            return await self._fetch(conn, table, id)

    async def update(
        self, schema: EntitySchema, id: str, values: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Set the given columns and return the updated row, or None if absent."""
        if not is_valid_id(id):
            return None
        table = self._table(schema)
        params = self._values(table, schema, values)
        async with self._begin() as conn:
            if params:
                result = await conn.execute(
                    sa.update(table).where(table.c.id == id).values(**params)
                )
                if result.rowcount == 0:
                    return None
            return await self._fetch(conn, table, id)

    async def delete(self, schema: EntitySchema, id: str) -> bool:
        if not is_valid_id(id):
            return False
        table = self._table(schema)
        async with self._begin() as conn:
            result = await conn.execute(sa.delete(table).where(table.c.id == id))
        return result.rowcount > 0

    async def query(
        self,
        schema: EntitySchema,
        filters: dict[str, Any] | None = None,
        sort: Sort | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Select rows matching equality filters, ordered and paged."""
        table = self._table(schema)
        stmt = sa.select(table)

        for name, value in to_storage(schema, filters or {}).items():
            column = self._column(table, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)

        if sort is not None:
            column = self._column(table, sort.field)
            stmt = stmt.order_by(column.desc() if sort.descending else column.asc())
        stmt = stmt.order_by(table.c.id).limit(limit).offset(offset)

        async with self._begin() as conn:
            result = await conn.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    def _values(self, table: sa.Table, schema: EntitySchema, values: dict[str, Any]) -> dict[str, Any]:
        for name in values:
            self._column(table, name)
        return to_storage(schema, values)
