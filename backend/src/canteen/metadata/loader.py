"""Load and resolve entity schemas from declarative documents."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from canteen.core.types import is_known_type
from canteen.errors import SchemaLoadError
from canteen.metadata.validator import validate_document

logger = logging.getLogger(__name__)

# Columns present on every entity table, managed by the server.
IMPLICIT_FIELDS = ("id", "created_date", "updated_date", "created_by")

ACTIONS = ("read", "create", "update", "delete", "list")

DOCUMENT_SUFFIXES = (".yaml", ".yml", ".json")


@dataclass(frozen=True)
class EntityField:
    name: str
    type: str
    required: bool = False
    unique: bool = False
    default: Any = None
    has_default: bool = False
    enum: tuple[str, ...] | None = None
    format: str | None = None
    min_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    hidden: bool = False

    @property
    def is_implicit(self) -> bool:
        return self.name in IMPLICIT_FIELDS


@dataclass(frozen=True)
class PermissionRule:
    """Flags granting one action.

    Evaluated in order: public, admin, authenticated, own.
    """

    public: bool = False
    authenticated: bool = False
    admin: bool = False
    own: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.public or self.authenticated or self.admin or self.own)


@dataclass(frozen=True)
class EntitySchema:
    """One business entity: its table, fields and per-action permissions.

    Attributes:
        name: Logical name, used in route paths and registry lookups
        table_name: Physical table name
        fields: Declared fields in declaration order
        permissions: Rule per action; a missing action is disallowed
        document: The declarative document as loaded, served for introspection
    """

    name: str
    table_name: str
    fields: Mapping[str, EntityField]
    permissions: Mapping[str, PermissionRule]
    document: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def declared_fields(self) -> list[EntityField]:
        """Declared fields that are not implicit columns."""
        return [f for f in self.fields.values() if not f.is_implicit]

    def permission(self, action: str) -> PermissionRule | None:
        return self.permissions.get(action)

    @property
    def uses_ownership(self) -> bool:
        """True when any rule restricts rows to their creator."""
        return any(rule.own for rule in self.permissions.values())

    def to_document(self) -> dict[str, Any]:
        return copy.deepcopy(dict(self.document))


def resolve_entity(data: dict[str, Any]) -> EntitySchema:
    """Convert a validated document into an EntitySchema."""
    fields: dict[str, EntityField] = {}
    for field_name, field_data in data.get("fields", {}).items():
        fields[field_name] = _resolve_field(field_name, field_data)

    permissions: dict[str, PermissionRule] = {}
    for action, rule_data in (data.get("permissions") or {}).items():
        if rule_data is None:
            continue
        permissions[action] = PermissionRule(
            public=rule_data.get("public", False),
            authenticated=rule_data.get("authenticated", False),
            admin=rule_data.get("admin", False),
            own=rule_data.get("own", False),
        )

    return EntitySchema(
        name=data["name"],
        table_name=data["tableName"],
        fields=MappingProxyType(fields),
        permissions=MappingProxyType(permissions),
        document=MappingProxyType(copy.deepcopy(data)),
    )


def _resolve_field(name: str, data: dict[str, Any]) -> EntityField:
    enum = data.get("enum")
    return EntityField(
        name=name,
        type=data.get("type", "string"),
        required=data.get("required", False),
        unique=data.get("unique", False),
        default=data.get("default"),
        has_default="default" in data,
        enum=tuple(enum) if enum is not None else None,
        format=data.get("format"),
        min_length=data.get("minLength"),
        minimum=data.get("minimum"),
        maximum=data.get("maximum"),
        hidden=data.get("hidden", False),
    )


class MetadataLoader:
    """Loads entity schemas from a directory of YAML or JSON documents.

    Either every document loads or SchemaLoadError is raised; there is no
    partial registry.
    """

    def __init__(self, entities_path: Path):
        self.entities_path = entities_path
        self.entities: dict[str, EntitySchema] = {}

    def load_all(self) -> Mapping[str, EntitySchema]:
        """Load every entity document and return the read-only registry."""
        if not self.entities_path.is_dir():
            raise SchemaLoadError(f"Entities directory not found: {self.entities_path}")

        entities: dict[str, EntitySchema] = {}
        tables: dict[str, str] = {}

        for path in sorted(self.entities_path.iterdir()):
            if path.suffix not in DOCUMENT_SUFFIXES:
                continue
            schema = self._load_file(path)

            if schema.name in entities:
                raise SchemaLoadError(f"Duplicate entity name '{schema.name}'", str(path))
            if schema.table_name in tables:
                raise SchemaLoadError(
                    f"Table '{schema.table_name}' is used by both "
                    f"'{tables[schema.table_name]}' and '{schema.name}'",
                    str(path),
                )
            entities[schema.name] = schema
            tables[schema.table_name] = schema.name
            logger.info("Loaded entity schema: %s", schema.name)

        self.entities = entities
        return self.registry

    def _load_file(self, path: Path) -> EntitySchema:
        try:
            with path.open(encoding="utf-8") as fh:
                data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise SchemaLoadError(f"Parse error: {exc}", str(path))

        issues = validate_document(data, path)
        if issues:
            raise SchemaLoadError("; ".join(i.describe() for i in issues), str(path))

        schema = resolve_entity(data)
        for f in schema.fields.values():
            if not is_known_type(f.type):
                logger.warning(
                    "Entity '%s' field '%s' has unrecognized type '%s'; stored as text",
                    schema.name, f.name, f.type,
                )
        return schema

    @property
    def registry(self) -> Mapping[str, EntitySchema]:
        return MappingProxyType(self.entities)

    def get_entity(self, name: str) -> EntitySchema | None:
        """Get a resolved entity by name."""
        return self.entities.get(name)

    def list_entities(self) -> list[str]:
        """List all entity names."""
        return list(self.entities.keys())


def load_schemas(entities_path: Path) -> Mapping[str, EntitySchema]:
    """Load every entity schema under ``entities_path``.

    Raises:
        SchemaLoadError: the directory is missing or any document is invalid.
    """
    return MetadataLoader(entities_path).load_all()
