"""
In-memory persistence adapter.

Stores rows in per-entity dictionaries, for:
- Dispatcher unit tests without a database
- Local experiments (``DATABASE_URL=memory:``)

Invariants:
    - All data is lost on process exit
    - Rows are deep-copied in and out; callers never share state with the store
    - Values pass through the same storage conversion as the SQL adapter
    - Absent columns take their declared default, as a server default would
    - NOT NULL on required fields and unique fields are enforced like the
      database would, as StorageError
    - insert_many stores all rows or none
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from canteen.errors import StorageError
from canteen.metadata.loader import IMPLICIT_FIELDS, EntitySchema
from canteen.persistence.adapter import Sort
from canteen.persistence.tables import to_storage

logger = logging.getLogger(__name__)


class MemoryAdapter:
    """Dictionary-backed implementation of PersistenceAdapter.

    Attributes:
        tables: Rows per table name, keyed by id
        indexes: Index names created per table name
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.indexes: dict[str, set[str]] = {}
        self.connected = False

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    def _rows(self, schema: EntitySchema) -> dict[str, dict[str, Any]]:
        if schema.table_name not in self.tables:
            raise StorageError(f"Table '{schema.table_name}' does not exist")
        return self.tables[schema.table_name]

    @staticmethod
    def _columns(schema: EntitySchema) -> list[str]:
        return list(IMPLICIT_FIELDS) + [f.name for f in schema.declared_fields]

    def _check_columns(self, schema: EntitySchema, names: Any) -> None:
        columns = self._columns(schema)
        for name in names:
            if name not in columns:
                raise ValueError(f"Unknown column '{name}' on table '{schema.table_name}'")

    def _check_constraints(
        self,
        schema: EntitySchema,
        row: dict[str, Any],
        existing: dict[str, dict[str, Any]],
    ) -> None:
        if row["id"] in existing:
            raise StorageError("Constraint violation")
        for field in schema.declared_fields:
            if field.required and row.get(field.name) is None:
                raise StorageError("Constraint violation")
            if not field.unique or row.get(field.name) is None:
                continue
            for other in existing.values():
                if other["id"] != row["id"] and other.get(field.name) == row[field.name]:
                    raise StorageError("Constraint violation")

    def _new_row(self, schema: EntitySchema, values: dict[str, Any]) -> dict[str, Any]:
        self._check_columns(schema, values)
        row = {name: None for name in self._columns(schema)}
        for field in schema.declared_fields:
            if field.name not in values and field.has_default and field.default is not None:
                row[field.name] = copy.deepcopy(field.default)
        row.update(copy.deepcopy(values))
        return to_storage(schema, row)

    async def materialize(self, schema: EntitySchema) -> None:
        self.tables.setdefault(schema.table_name, {})
        indexes = self.indexes.setdefault(schema.table_name, set())
        indexes.add(f"idx_{schema.table_name}_created_date")
        if "created_by" in schema.fields or schema.uses_ownership:
            indexes.add(f"idx_{schema.table_name}_created_by")

    async def insert(self, schema: EntitySchema, row: dict[str, Any]) -> dict[str, Any]:
        rows = self._rows(schema)
        stored = self._new_row(schema, row)
        self._check_constraints(schema, stored, rows)
        rows[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def insert_many(
        self, schema: EntitySchema, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        table = self._rows(schema)
        staged = dict(table)
        new_rows = []
        for values in rows:
            stored = self._new_row(schema, values)
            self._check_constraints(schema, stored, staged)
            staged[stored["id"]] = stored
            new_rows.append(stored)
        table.update({row["id"]: row for row in new_rows})
        return copy.deepcopy(new_rows)

    async def get(self, schema: EntitySchema, id: str) -> dict[str, Any] | None:
        row = self._rows(schema).get(id)
        return copy.deepcopy(row) if row is not None else None

    async def update(
        self, schema: EntitySchema, id: str, values: dict[str, Any]
    ) -> dict[str, Any] | None:
        rows = self._rows(schema)
        if id not in rows:
            return None
        self._check_columns(schema, values)
        updated = {**rows[id], **copy.deepcopy(to_storage(schema, values))}
        others = {key: row for key, row in rows.items() if key != id}
        self._check_constraints(schema, updated, others)
        rows[id] = updated
        return copy.deepcopy(updated)

    async def delete(self, schema: EntitySchema, id: str) -> bool:
        return self._rows(schema).pop(id, None) is not None

    async def query(
        self,
        schema: EntitySchema,
        filters: dict[str, Any] | None = None,
        sort: Sort | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        self._check_columns(schema, filters)
        filters = to_storage(schema, filters)
        matches = [
            row for row in self._rows(schema).values()
            if all(row.get(name) == value for name, value in filters.items())
        ]
        matches.sort(key=lambda row: row["id"])
        if sort is not None:
            self._check_columns(schema, [sort.field])
            # Nulls sort first ascending, as SQLite orders them
            matches.sort(
                key=lambda row: (row.get(sort.field) is not None, row.get(sort.field)),
                reverse=sort.descending,
            )
        return copy.deepcopy(matches[offset:offset + limit])
