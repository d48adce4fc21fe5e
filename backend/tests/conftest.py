"""Shared fixtures: entity documents on disk, settings and tokens."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from canteen.auth import JWTService, Principal
from canteen.config import Settings
from canteen.metadata.loader import EntitySchema, resolve_entity
from canteen.persistence.config import DatabaseConfig

TEST_SECRET = "test-secret-key-with-enough-length"

# Path to the shipped entity documents
REPO_ROOT = Path(__file__).resolve().parents[2]
ENTITIES_DIR = REPO_ROOT / "metadata" / "entities"


WIDGET = {
    "name": "Widget",
    "tableName": "widgets",
    "fields": {
        "count": {"type": "number", "minimum": 0, "maximum": 10, "required": True},
    },
    "permissions": {
        "list": {"authenticated": True},
        "read": {"authenticated": True},
        "create": {"authenticated": True},
        "update": {"authenticated": True},
        "delete": {"authenticated": True},
    },
}

NOTE = {
    "name": "Note",
    "tableName": "notes",
    "fields": {
        "title": {"type": "string", "required": True, "minLength": 2},
        "body": {"type": "string"},
        "secret": {"type": "string", "hidden": True},
        "created_by": {"type": "string", "hidden": True},
        "priority": {"type": "number", "minimum": 1, "maximum": 5, "default": 3},
        "status": {"type": "string", "enum": ["open", "closed"], "default": "open"},
        "pinned": {"type": "boolean", "default": False},
        "due": {"type": "string", "format": "date"},
        "tags": {"type": "json", "default": []},
    },
    "permissions": {
        "list": {"own": True},
        "read": {"own": True},
        "create": {"authenticated": True},
        "update": {"own": True},
        "delete": {"admin": True},
    },
}

PRODUCT = {
    "name": "Product",
    "tableName": "products",
    "fields": {
        "name": {"type": "string", "required": True},
        "sku": {"type": "string", "unique": True},
        "price": {"type": "number", "minimum": 0},
        "active": {"type": "boolean", "default": True},
    },
    "permissions": {
        "list": {"public": True},
        "read": {"public": True},
        "create": {"admin": True},
        "update": {"admin": True},
    },
}


def write_entity(directory: Path, doc: dict[str, Any], filename: str | None = None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / (filename or f"{doc['name']}.yaml")
    path.write_text(yaml.safe_dump(doc, sort_keys=False))
    return path


def make_schema(doc: dict[str, Any]) -> EntitySchema:
    return resolve_entity(doc)


def make_settings(metadata_path: Path, database_url: str = "sqlite:///:memory:") -> Settings:
    return Settings(
        environment="test",
        database=DatabaseConfig(url=database_url),
        metadata_path=metadata_path,
        jwt_secret=TEST_SECRET,
    )


ALICE = Principal(id="11111111-1111-1111-1111-111111111111", email="alice@example.com")
BOB = Principal(id="22222222-2222-2222-2222-222222222222", email="bob@example.com")
ADMIN = Principal(
    id="33333333-3333-3333-3333-333333333333",
    email="admin@example.com",
    role="admin",
    full_name="Admin",
)


def bearer(principal: Principal) -> dict[str, str]:
    token = JWTService(TEST_SECRET).generate_token(principal)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def metadata_dir(tmp_path: Path) -> Path:
    """A metadata directory holding the Widget, Note and Product entities."""
    metadata = tmp_path / "metadata"
    for doc in (WIDGET, NOTE, PRODUCT):
        write_entity(metadata / "entities", doc)
    return metadata
