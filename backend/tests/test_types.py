"""Tests for type mapping and table materialization."""

import re

import pytest
import pytest_asyncio
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateTable

from canteen.core.types import get_field_type, get_storage_type, is_known_type
from canteen.metadata.loader import EntityField, resolve_entity
from canteen.persistence.config import DatabaseConfig
from canteen.persistence.sql import SQLAlchemyAdapter
from canteen.persistence.tables import build_table, server_default
from conftest import NOTE, PRODUCT, WIDGET, make_schema


# ── Helpers ──────────────────────────────────────────────────────────────────


def field(type: str = "string", **kwargs) -> EntityField:
    return EntityField(name="f", type=type, **kwargs)


def ddl(schema, dialect=None) -> str:
    table = build_table(schema, sa.MetaData())
    return str(CreateTable(table).compile(dialect=dialect or sqlite.dialect()))


@pytest_asyncio.fixture
async def adapter():
    db = SQLAlchemyAdapter(DatabaseConfig(url="sqlite:///:memory:"))
    await db.connect()
    yield db
    await db.close()


async def inspect(db: SQLAlchemyAdapter, fn):
    async with db.engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: fn(sa.inspect(sync_conn)))


# ── Type mapping ─────────────────────────────────────────────────────────────


class TestTypeMapping:
    @pytest.mark.parametrize(
        "f, expected",
        [
            (field("string"), "TEXT"),
            (field("string", format="email"), "VARCHAR(255)"),
            (field("string", format="date"), "DATE"),
            (field("string", format="uri"), "TEXT"),
            (field("number"), "DECIMAL(10, 2)"),
            (field("boolean"), "BOOLEAN"),
            (field("json"), "JSONB"),
            (field("datetime"), "TEXT"),
        ],
    )
    def test_storage_types(self, f, expected):
        assert get_storage_type(f) == expected

    def test_known_types(self):
        assert is_known_type("json")
        assert not is_known_type("datetime")

    def test_format_only_refines_strings(self):
        assert get_field_type(field("number", format="email")).name == "number"

    def test_postgres_column_types(self):
        schema = make_schema(
            {
                "name": "Thing",
                "tableName": "things",
                "fields": {
                    "meta": {"type": "json"},
                    "email": {"type": "string", "format": "email"},
                    "amount": {"type": "number"},
                },
            }
        )
        sql = ddl(schema, postgresql.dialect())
        assert "meta JSONB" in sql
        assert "email VARCHAR(255)" in sql
        assert "amount NUMERIC(10, 2)" in sql
        assert "id UUID NOT NULL" in sql


# ── Table definition ─────────────────────────────────────────────────────────


class TestBuildTable:
    def test_implicit_columns_come_first(self):
        table = build_table(make_schema(WIDGET), sa.MetaData())
        assert [c.name for c in table.columns] == [
            "id", "created_date", "updated_date", "created_by", "count",
        ]
        assert table.c.id.primary_key

    def test_required_is_not_null(self):
        table = build_table(make_schema(NOTE), sa.MetaData())
        assert table.c.title.nullable is False
        assert table.c.body.nullable is True

    def test_unique_constraint(self):
        sql = ddl(make_schema(PRODUCT))
        assert "UNIQUE (sku)" in sql

    def test_declared_implicit_name_is_not_duplicated(self):
        table = build_table(make_schema(NOTE), sa.MetaData())
        assert [c.name for c in table.columns].count("created_by") == 1

    def test_defaults_rendered_by_dialect(self):
        sql = ddl(make_schema(NOTE))
        assert "DEFAULT 'open'" in sql
        assert "DEFAULT '[]'" in sql
        # SQLite wraps expression defaults in parentheses
        assert re.search(r"priority NUMERIC\(10, 2\) DEFAULT \(?3\)?", sql)
        assert re.search(r"pinned BOOLEAN DEFAULT \(?(0|false)\)?", sql)

    def test_postgres_boolean_default(self):
        sql = ddl(make_schema(PRODUCT), postgresql.dialect())
        assert "DEFAULT true" in sql

    def test_text_default_is_escaped(self):
        schema = make_schema(
            {
                "name": "Quote",
                "tableName": "quotes",
                "fields": {"text": {"type": "string", "default": "it's'); DROP TABLE x; --"}},
            }
        )
        sql = ddl(schema)
        assert "DEFAULT 'it''s''); DROP TABLE x; --'" in sql

    def test_no_default_without_declaration(self):
        assert server_default(field("string")) is None
        assert server_default(field("string", default=None, has_default=True)) is None

    def test_indexes(self):
        widget = build_table(make_schema(WIDGET), sa.MetaData())
        note = build_table(make_schema(NOTE), sa.MetaData())
        assert {i.name for i in widget.indexes} == {"idx_widgets_created_date"}
        assert {i.name for i in note.indexes} == {
            "idx_notes_created_date",
            "idx_notes_created_by",
        }

    def test_ownership_rule_adds_created_by_index(self):
        doc = dict(WIDGET, permissions={"list": {"own": True}})
        table = build_table(make_schema(doc), sa.MetaData())
        assert "idx_widgets_created_by" in {i.name for i in table.indexes}


# ── Materialization ──────────────────────────────────────────────────────────


class TestMaterialize:
    @pytest.mark.asyncio
    async def test_creates_table_and_indexes(self, adapter):
        schema = make_schema(NOTE)
        await adapter.materialize(schema)

        tables = await inspect(adapter, lambda i: i.get_table_names())
        indexes = await inspect(adapter, lambda i: i.get_indexes("notes"))
        assert "notes" in tables
        assert {ix["name"] for ix in indexes} == {
            "idx_notes_created_date",
            "idx_notes_created_by",
        }

    @pytest.mark.asyncio
    async def test_is_idempotent(self, adapter):
        schema = make_schema(NOTE)
        await adapter.materialize(schema)
        await adapter.materialize(schema)

        indexes = await inspect(adapter, lambda i: i.get_indexes("notes"))
        assert len(indexes) == 2

    @pytest.mark.asyncio
    async def test_idempotent_across_adapters(self, tmp_path):
        config = DatabaseConfig(url=f"sqlite:///{tmp_path / 'data' / 'canteen.db'}")
        for _ in range(2):
            db = SQLAlchemyAdapter(config)
            await db.connect()
            await db.materialize(make_schema(WIDGET))
            await db.close()
        assert (tmp_path / "data" / "canteen.db").exists()

    @pytest.mark.asyncio
    async def test_database_defaults_apply(self, adapter):
        schema = make_schema(NOTE)
        await adapter.materialize(schema)
        row = await adapter.insert(
            schema,
            {"id": "44444444-4444-4444-4444-444444444444", "title": "hello"},
        )
        assert row["status"] == "open"
        assert row["priority"] == 3
        assert row["pinned"] is False
        assert row["tags"] == []
        assert row["created_date"] is not None

    @pytest.mark.asyncio
    async def test_columns_match_schema(self, adapter):
        schema = resolve_entity(PRODUCT)
        await adapter.materialize(schema)
        columns = await inspect(adapter, lambda i: i.get_columns("products"))
        assert [c["name"] for c in columns] == [
            "id", "created_date", "updated_date", "created_by",
            "name", "sku", "price", "active",
        ]
