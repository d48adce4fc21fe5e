"""Tests for settings and database configuration."""

from pathlib import Path

import pytest

from canteen.config import DEV_SECRET, Settings, resolve_base_path
from canteen.errors import ConfigurationError
from canteen.persistence import DatabaseConfig, create_adapter
from canteen.persistence.memory import MemoryAdapter
from canteen.persistence.sql import SQLAlchemyAdapter

ENV_VARS = (
    "CANTEEN_ENV",
    "DATABASE_URL",
    "CANTEEN_DB_PATH",
    "CANTEEN_METADATA_PATH",
    "JWT_SECRET",
    "JWT_EXPIRES_IN",
    "CORS_ORIGIN",
    "CANTEEN_LOG_LEVEL",
    "CANTEEN_API_PREFIX",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_development_defaults(self, tmp_path):
        settings = Settings.from_env(base_path=tmp_path)
        assert settings.environment == "development"
        assert settings.is_development
        assert settings.jwt_secret == DEV_SECRET
        assert settings.metadata_path == tmp_path / "metadata"
        assert settings.entities_path == tmp_path / "metadata" / "entities"
        assert settings.database.url == f"sqlite:///{tmp_path / 'data' / 'canteen.db'}"
        assert settings.api_prefix == "/api"

    def test_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CANTEEN_ENV", "production")
        monkeypatch.setenv("JWT_SECRET", "prod-secret")
        monkeypatch.setenv("JWT_EXPIRES_IN", "3600")
        monkeypatch.setenv("DATABASE_URL", "postgresql://canteen@db/canteen")
        monkeypatch.setenv("CANTEEN_METADATA_PATH", "/srv/metadata")
        monkeypatch.setenv("CORS_ORIGIN", "https://canteen.example.edu")
        monkeypatch.setenv("CANTEEN_LOG_LEVEL", "debug")

        settings = Settings.from_env(base_path=tmp_path)
        assert not settings.is_development
        assert settings.jwt_secret == "prod-secret"
        assert settings.jwt_expires_in == 3600
        assert settings.database.is_postgresql
        assert settings.metadata_path == Path("/srv/metadata")
        assert settings.cors_origin == "https://canteen.example.edu"
        assert settings.log_level == "DEBUG"

    def test_secret_required_outside_development(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CANTEEN_ENV", "production")
        with pytest.raises(ConfigurationError, match="JWT_SECRET not configured"):
            Settings.from_env(base_path=tmp_path)

    def test_unknown_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CANTEEN_ENV", "staging")
        with pytest.raises(ConfigurationError):
            Settings.from_env(base_path=tmp_path)

    def test_malformed_ttl(self, tmp_path, monkeypatch):
        monkeypatch.setenv("JWT_EXPIRES_IN", "a week")
        with pytest.raises(ConfigurationError, match="JWT_EXPIRES_IN"):
            Settings.from_env(base_path=tmp_path)

    def test_base_path_from_backend_dir(self, tmp_path):
        assert resolve_base_path(tmp_path / "backend") == tmp_path
        assert resolve_base_path(tmp_path) == tmp_path


class TestDatabaseConfig:
    def test_db_path_env(self, monkeypatch):
        monkeypatch.setenv("CANTEEN_DB_PATH", "/var/lib/canteen.db")
        config = DatabaseConfig.from_env()
        assert config.url == "sqlite:////var/lib/canteen.db"
        assert config.sqlite_path == "/var/lib/canteen.db"

    def test_database_url_wins(self, monkeypatch):
        monkeypatch.setenv("CANTEEN_DB_PATH", "/var/lib/canteen.db")
        monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/canteen")
        assert DatabaseConfig.from_env().url == "postgresql://localhost/canteen"

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("sqlite:///data/canteen.db", "sqlite+aiosqlite:///data/canteen.db"),
            ("sqlite:///:memory:", "sqlite+aiosqlite:///:memory:"),
            ("postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"),
            ("postgresql+psycopg://h/db", "postgresql+psycopg://h/db"),
        ],
    )
    def test_sqlalchemy_url(self, url, expected):
        assert DatabaseConfig(url=url).sqlalchemy_url == expected

    def test_memory_sqlite_has_no_path(self):
        assert DatabaseConfig(url="sqlite:///:memory:").sqlite_path is None
        assert DatabaseConfig(url="postgresql://h/db").sqlite_path is None


class TestCreateAdapter:
    def test_memory(self):
        assert isinstance(create_adapter(DatabaseConfig(url="memory:")), MemoryAdapter)

    @pytest.mark.parametrize("url", ["sqlite:///:memory:", "postgresql://h/db"])
    def test_sql(self, url):
        assert isinstance(create_adapter(DatabaseConfig(url=url)), SQLAlchemyAdapter)

    def test_unsupported(self):
        with pytest.raises(ValueError, match="Unsupported database URL scheme"):
            create_adapter(DatabaseConfig(url="mysql://h/db"))
