"""Shared interface for all storage adapters."""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from canteen.metadata.loader import EntitySchema


@dataclass(frozen=True)
class Sort:
    """Ordering on a single column."""

    field: str
    descending: bool = False


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Interface all persistence adapters must implement.

    Every data-access call is a coroutine. Column names passed in
    ``values``, ``filters`` and ``sort`` must already be allow-listed
    against the schema; adapters reject names that are not columns of the
    materialized table.
    """

    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def materialize(self, schema: EntitySchema) -> None: ...

    async def insert(self, schema: EntitySchema, row: dict[str, Any]) -> dict[str, Any]: ...

    async def insert_many(
        self, schema: EntitySchema, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]: ...

    async def get(self, schema: EntitySchema, id: str) -> dict[str, Any] | None: ...

    async def update(
        self, schema: EntitySchema, id: str, values: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    async def delete(self, schema: EntitySchema, id: str) -> bool: ...

    async def query(
        self,
        schema: EntitySchema,
        filters: dict[str, Any] | None = None,
        sort: Sort | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...
