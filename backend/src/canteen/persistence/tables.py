"""Table definitions derived from entity schemas.

Every table carries the implicit columns (id, created_date, updated_date,
created_by) followed by one column per declared field. Per field the
constraints are: type, NOT NULL when required, DEFAULT when declared,
UNIQUE when declared. Defaults are SQLAlchemy constructs rendered by the
dialect compiler, so text defaults are escaped as literals.
"""

from __future__ import annotations

import json
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from canteen.core.types import get_column_type, get_field_type
from canteen.metadata.loader import EntityField, EntitySchema

NUMBER_SCALE = Decimal("0.01")


def _id_type() -> sa.types.TypeEngine:
    return sa.String(36).with_variant(postgresql.UUID(as_uuid=False), "postgresql")


def implicit_columns() -> list[sa.Column]:
    return [
        sa.Column("id", _id_type(), primary_key=True),
        sa.Column(
            "created_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_date",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("created_by", sa.String(255)),
    ]


def server_default(field: EntityField) -> Any:
    """Build the DEFAULT clause argument for a field, or None."""
    if not field.has_default or field.default is None:
        return None

    value = field.default
    if field.type == "json" or isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return sa.true() if value else sa.false()
    if isinstance(value, (int, float)):
        return sa.literal(value)
    return str(value)


def build_table(schema: EntitySchema, metadata: sa.MetaData) -> sa.Table:
    """Define the table and its indexes for an entity."""
    columns = implicit_columns()
    for field in schema.declared_fields:
        columns.append(
            sa.Column(
                field.name,
                get_column_type(field),
                nullable=not field.required,
                server_default=server_default(field),
                unique=field.unique,
            )
        )

    table = sa.Table(schema.table_name, metadata, *columns)

    sa.Index(f"idx_{schema.table_name}_created_date", table.c.created_date)
    if "created_by" in schema.fields or schema.uses_ownership:
        sa.Index(f"idx_{schema.table_name}_created_by", table.c.created_by)

    return table


def round_number(value: float) -> float:
    """Round to the column scale, half up, as NUMERIC(10, 2) stores it."""
    return float(Decimal(str(value)).quantize(NUMBER_SCALE, rounding=ROUND_HALF_UP))


def to_storage(schema: EntitySchema, values: dict[str, Any]) -> dict[str, Any]:
    """Convert API values into bind parameters for the table's columns.

    Date strings become dates and numbers are rounded to two places, so
    every backend stores the same value.
    """
    converted: dict[str, Any] = {}
    for name, value in values.items():
        field = schema.fields.get(name)
        if field is not None and not field.is_implicit:
            kind = get_field_type(field).name
            if kind == "date" and isinstance(value, str):
                value = date.fromisoformat(value)
            elif (
                kind == "number"
                and isinstance(value, (int, float))
                and not isinstance(value, bool)
            ):
                value = round_number(value)
        converted[name] = value
    return converted


def is_valid_id(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True
