"""Field type registry: abstract field types and their physical columns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

if TYPE_CHECKING:
    from canteen.metadata.loader import EntityField


@dataclass(frozen=True)
class FieldType:
    name: str
    storage_type: str  # DDL spelling, for reporting
    column_type: Callable[[], sa.types.TypeEngine]


def _json_type() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


FIELD_TYPES: dict[str, FieldType] = {
    "string": FieldType(name="string", storage_type="TEXT", column_type=sa.Text),
    "number": FieldType(
        name="number",
        storage_type="DECIMAL(10, 2)",
        # Floats out, so rows serialize to JSON without Decimal handling
        column_type=lambda: sa.Numeric(10, 2, asdecimal=False),
    ),
    "boolean": FieldType(name="boolean", storage_type="BOOLEAN", column_type=sa.Boolean),
    "json": FieldType(name="json", storage_type="JSONB", column_type=_json_type),
}

# Refinements of the string type keyed by format.
STRING_FORMATS: dict[str, FieldType] = {
    "email": FieldType(name="email", storage_type="VARCHAR(255)", column_type=lambda: sa.String(255)),
    "date": FieldType(name="date", storage_type="DATE", column_type=sa.Date),
}

FALLBACK_TYPE = FieldType(name="text", storage_type="TEXT", column_type=sa.Text)

EMAIL_MAX_LENGTH = 255


def is_known_type(type_name: str) -> bool:
    return type_name in FIELD_TYPES


def get_field_type(field: EntityField) -> FieldType:
    """Resolve the physical type for a field, falling back to text."""
    if field.type == "string" and field.format in STRING_FORMATS:
        return STRING_FORMATS[field.format]
    return FIELD_TYPES.get(field.type, FALLBACK_TYPE)


def get_column_type(field: EntityField) -> sa.types.TypeEngine:
    """Get a fresh SQLAlchemy column type for a field."""
    return get_field_type(field).column_type()


def get_storage_type(field: EntityField) -> str:
    """Get the DDL spelling of a field's physical type."""
    return get_field_type(field).storage_type
