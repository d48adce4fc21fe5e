"""Generic entity endpoints derived from entity schemas.

One EntityHandlers instance is built per schema at startup. It closes
over the immutable schema and the storage adapter and implements every
operation for that entity:

    GET    /entities/{name}          list, with filters, sort and paging
    POST   /entities/{name}          create one row
    POST   /entities/{name}/bulk     create many rows, admin only
    GET    /entities/{name}/schema   the entity document
    GET    /entities/{name}/{id}     read one row
    PUT    /entities/{name}/{id}     update one row
    DELETE /entities/{name}/{id}     delete one row

Every response row is projected: declared fields that are not hidden,
followed by the four implicit columns.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import date, datetime, timezone
from typing import Any, Mapping

from fastapi import APIRouter, Body, Depends, Query, Request, Response

from canteen.auth.dependencies import get_current_principal
from canteen.auth.permissions import Action, authorize, authorize_list, require_rule
from canteen.auth.types import Principal
from canteen.core.types import get_field_type
from canteen.errors import AuthenticationRequired, Forbidden, NotFound, ValidationFailed
from canteen.metadata.loader import IMPLICIT_FIELDS, EntityField, EntitySchema
from canteen.persistence.adapter import PersistenceAdapter, Sort
from canteen.validation import apply_defaults, validate

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
DEFAULT_SORT = Sort(field="created_date", descending=True)
RESERVED_PARAMS = ("sort", "limit", "offset")
SORTABLE_IMPLICIT = ("created_date", "updated_date")

_TRUE = ("true", "1")
_FALSE = ("false", "0")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class EntityHandlers:
    """Operations for a single entity."""

    def __init__(self, schema: EntitySchema, adapter: PersistenceAdapter):
        self.schema = schema
        self.adapter = adapter
        self._writable = [f.name for f in schema.declared_fields]
        self._visible = [f.name for f in schema.declared_fields if not f.hidden]
        self._filterable: dict[str, EntityField | None] = {
            f.name: f
            for f in schema.declared_fields
            if f.type != "json" and not f.hidden
        }
        self._filterable["created_by"] = None
        self._sortable = set(self._visible) | set(SORTABLE_IMPLICIT)

    @property
    def name(self) -> str:
        return self.schema.name

    # ------------------------------------------------------------------
    # Projection and request parsing
    # ------------------------------------------------------------------

    def project(self, row: Mapping[str, Any]) -> dict[str, Any]:
        """Strip hidden fields from a stored row."""
        projected = {name: row.get(name) for name in self._visible}
        for name in IMPLICIT_FIELDS:
            projected[name] = row.get(name)
        return projected

    def parse_filters(self, params: Mapping[str, str]) -> dict[str, Any]:
        """Turn query parameters naming filterable fields into typed equality filters.

        Unknown keys are ignored.
        """
        filters: dict[str, Any] = {}
        for key, raw in params.items():
            if key in RESERVED_PARAMS or key not in self._filterable:
                continue
            filters[key] = self._coerce(key, self._filterable[key], raw)
        return filters

    @staticmethod
    def _coerce(key: str, field: EntityField | None, raw: str) -> Any:
        if field is None:
            return raw
        kind = get_field_type(field).name
        if kind == "boolean":
            if raw.lower() in _TRUE:
                return True
            if raw.lower() in _FALSE:
                return False
            raise ValidationFailed([f"Filter '{key}' must be true or false"])
        if kind == "number":
            try:
                value = float(raw)
            except ValueError:
                value = math.nan
            if not math.isfinite(value):
                raise ValidationFailed([f"Filter '{key}' must be a number"])
            return value
        if kind == "date":
            try:
                date.fromisoformat(raw)
            except ValueError:
                raise ValidationFailed([f"Filter '{key}' must be a valid date (YYYY-MM-DD)"])
        return raw

    def parse_sort(self, sort: str | None) -> Sort:
        """Parse ``field`` or ``-field``; anything not sortable falls back to newest first."""
        if not sort:
            return DEFAULT_SORT
        descending = sort.startswith("-")
        field = sort[1:] if descending else sort
        if field not in self._sortable:
            return DEFAULT_SORT
        return Sort(field=field, descending=descending)

    def _writable_values(self, data: Mapping[str, Any]) -> dict[str, Any]:
        return {name: data[name] for name in self._writable if name in data}

    def new_row(self, data: dict[str, Any], created_by: str) -> dict[str, Any]:
        """Build a storable row: declared fields with defaults, plus server-stamped columns."""
        row = self._writable_values(apply_defaults(self.schema, data))
        now = _now()
        row.update(
            id=str(uuid.uuid4()),
            created_date=now,
            updated_date=now,
            created_by=created_by,
        )
        return row

    async def _existing(self, id: str) -> dict[str, Any]:
        row = await self.adapter.get(self.schema, id)
        if row is None:
            raise NotFound()
        return row

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def list_rows(
        self,
        principal: Principal | None,
        params: Mapping[str, str],
        sort: str | None = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        decision = authorize_list(self.schema, principal)
        filters = self.parse_filters(params)

        if decision.row_filter:
            for key, value in decision.row_filter.items():
                if key in filters and filters[key] != value:
                    return []
                filters[key] = value

        rows = await self.adapter.query(
            self.schema,
            filters=filters,
            sort=self.parse_sort(sort),
            limit=limit,
            offset=offset,
        )
        return [self.project(row) for row in rows]

    async def get(self, principal: Principal | None, id: str) -> dict[str, Any]:
        require_rule(self.schema, Action.READ)
        row = await self._existing(id)
        authorize(self.schema, Action.READ, principal, owner=row.get("created_by"))
        return self.project(row)

    async def create(self, principal: Principal | None, data: Any) -> dict[str, Any]:
        if principal is None:
            raise AuthenticationRequired()
        authorize(self.schema, Action.CREATE, principal, owner=principal.email)

        if not isinstance(data, dict):
            raise ValidationFailed(["Request body must be a JSON object"])
        result = validate(self.schema, data)
        if not result.valid:
            raise ValidationFailed(result.errors)

        stored = await self.adapter.insert(self.schema, self.new_row(data, principal.email))
        logger.info("Created %s %s", self.name, stored["id"])
        return self.project(stored)

    async def bulk_create(self, principal: Principal | None, items: Any) -> list[dict[str, Any]]:
        """Create many rows at once; one invalid element rejects the whole batch."""
        if principal is None:
            raise AuthenticationRequired()
        require_rule(self.schema, Action.CREATE)
        if not principal.is_admin:
            raise Forbidden("Bulk create requires admin access")

        if not isinstance(items, list):
            raise ValidationFailed(["Request body must be a JSON array"])

        rejected: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            if not isinstance(item, dict):
                rejected.append({"index": index, "errors": ["Item must be a JSON object"]})
                continue
            result = validate(self.schema, item)
            if not result.valid:
                rejected.append({"index": index, "errors": result.errors})

        if rejected:
            raise ValidationFailed(
                [f"Item {r['index']}: {message}" for r in rejected for message in r["errors"]],
                items=rejected,
            )

        rows = [self.new_row(item, principal.email) for item in items]
        stored = await self.adapter.insert_many(self.schema, rows)
        logger.info("Bulk created %d %s rows", len(stored), self.name)
        return [self.project(row) for row in stored]

    async def update(self, principal: Principal | None, id: str, data: Any) -> dict[str, Any]:
        if principal is None:
            raise AuthenticationRequired()
        require_rule(self.schema, Action.UPDATE)
        existing = await self._existing(id)
        authorize(self.schema, Action.UPDATE, principal, owner=existing.get("created_by"))

        if not isinstance(data, dict):
            raise ValidationFailed(["Request body must be a JSON object"])
        result = validate(self.schema, data, is_update=True)
        if not result.valid:
            raise ValidationFailed(result.errors)

        values = self._writable_values(data)
        if not values:
            raise ValidationFailed(
                ["No valid fields to update"], message="No valid fields to update"
            )
        values["updated_date"] = _now()

        updated = await self.adapter.update(self.schema, id, values)
        if updated is None:
            raise NotFound()
        return self.project(updated)

    async def delete(self, principal: Principal | None, id: str) -> None:
        if principal is None:
            raise AuthenticationRequired()
        require_rule(self.schema, Action.DELETE)
        existing = await self._existing(id)
        authorize(self.schema, Action.DELETE, principal, owner=existing.get("created_by"))

        if not await self.adapter.delete(self.schema, id):
            raise NotFound()
        logger.info("Deleted %s %s", self.name, id)

    def describe(self) -> dict[str, Any]:
        return self.schema.to_document()


class EntityDispatcher:
    """Handler sets for every registered entity, keyed by entity name."""

    def __init__(self, registry: Mapping[str, EntitySchema], adapter: PersistenceAdapter):
        self.adapter = adapter
        self.handlers: dict[str, EntityHandlers] = {
            name: EntityHandlers(schema, adapter) for name, schema in registry.items()
        }

    def __contains__(self, name: str) -> bool:
        return name in self.handlers

    def get(self, name: str) -> EntityHandlers:
        handlers = self.handlers.get(name)
        if handlers is None:
            raise NotFound(f"Entity '{name}' not found")
        return handlers

    def list_entities(self) -> list[str]:
        return list(self.handlers.keys())

    async def materialize_all(self) -> None:
        """Create storage for every entity. Safe to run on every startup."""
        for handlers in self.handlers.values():
            await self.adapter.materialize(handlers.schema)
        logger.info("Materialized %d entities", len(self.handlers))


def _add_entity_routes(router: APIRouter, handlers: EntityHandlers) -> None:
    base = f"/entities/{handlers.name}"
    tag = handlers.name

    @router.get(base, tags=[tag])
    async def list_rows(
        request: Request,
        sort: str | None = None,
        limit: int = Query(DEFAULT_LIMIT, ge=0),
        offset: int = Query(0, ge=0),
        principal: Principal | None = Depends(get_current_principal),
    ) -> list[dict[str, Any]]:
        return await handlers.list_rows(principal, request.query_params, sort, limit, offset)

    @router.post(base, status_code=201, tags=[tag])
    async def create_row(
        body: Any = Body(...),
        principal: Principal | None = Depends(get_current_principal),
    ) -> dict[str, Any]:
        return await handlers.create(principal, body)

    @router.post(f"{base}/bulk", status_code=201, tags=[tag])
    async def bulk_create_rows(
        body: Any = Body(...),
        principal: Principal | None = Depends(get_current_principal),
    ) -> list[dict[str, Any]]:
        return await handlers.bulk_create(principal, body)

    # Registered before /{id} so "schema" is never read as an id
    @router.get(f"{base}/schema", tags=[tag])
    async def describe_entity() -> dict[str, Any]:
        return handlers.describe()

    @router.get(base + "/{id}", tags=[tag])
    async def get_row(
        id: str,
        principal: Principal | None = Depends(get_current_principal),
    ) -> dict[str, Any]:
        return await handlers.get(principal, id)

    @router.put(base + "/{id}", tags=[tag])
    async def update_row(
        id: str,
        body: Any = Body(...),
        principal: Principal | None = Depends(get_current_principal),
    ) -> dict[str, Any]:
        return await handlers.update(principal, id, body)

    @router.delete(base + "/{id}", status_code=204, tags=[tag])
    async def delete_row(
        id: str,
        principal: Principal | None = Depends(get_current_principal),
    ) -> Response:
        await handlers.delete(principal, id)
        return Response(status_code=204)


def create_entity_router(dispatcher: EntityDispatcher) -> APIRouter:
    """Build the entity routes for every registered schema."""
    router = APIRouter()

    @router.get("/entities", tags=["entities"])
    async def list_entity_names() -> dict[str, Any]:
        return {"entities": dispatcher.list_entities()}

    for handlers in dispatcher.handlers.values():
        _add_entity_routes(router, handlers)

    # Registered last: only reached when no entity route matched
    @router.api_route("/entities/{name}", methods=["GET", "POST"], include_in_schema=False)
    async def unknown_entity(name: str) -> None:
        dispatcher.get(name)
        raise NotFound()

    @router.api_route(
        "/entities/{name}/{rest:path}",
        methods=["GET", "POST", "PUT", "DELETE"],
        include_in_schema=False,
    )
    async def unknown_entity_path(name: str, rest: str) -> None:
        dispatcher.get(name)
        raise NotFound()

    return router
