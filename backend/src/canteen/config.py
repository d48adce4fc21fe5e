"""Service configuration loaded from environment variables.

All settings have defaults suitable for local development. Outside
development, JWT_SECRET must be set explicitly; the secret is never logged.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from canteen.errors import ConfigurationError
from canteen.persistence.config import DatabaseConfig

logger = logging.getLogger(__name__)

DEV_SECRET = "dev-secret-key-change-in-production"
DEFAULT_TOKEN_TTL = 7 * 24 * 60 * 60  # 7 days

ENVIRONMENTS = ("development", "production", "test")


def resolve_base_path(cwd: Path | None = None) -> Path:
    """Resolve the repository root from the working directory.

    Running from ``backend/`` maps to its parent, so the app and the CLI
    find ``metadata/`` the same way.
    """
    cwd = cwd or Path.cwd()
    if cwd.name == "backend":
        return cwd.parent
    return cwd


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and CLI.

    Attributes:
        environment: "development", "production" or "test"
        database: Database connection configuration
        metadata_path: Directory containing ``entities/``
        jwt_secret: HS256 signing secret
        jwt_expires_in: Access token lifetime in seconds
        cors_origin: Frontend origin allowed by CORS
        log_level: Root log level name
        api_prefix: Mount point of the REST surface
    """

    environment: str = "development"
    database: DatabaseConfig = DatabaseConfig(url="sqlite:///canteen.db")
    metadata_path: Path = Path("metadata")
    jwt_secret: str = DEV_SECRET
    jwt_expires_in: int = DEFAULT_TOKEN_TTL
    cors_origin: str = "http://localhost:5173"
    log_level: str = "INFO"
    api_prefix: str = "/api"

    @property
    def entities_path(self) -> Path:
        return self.metadata_path / "entities"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls, base_path: Path | None = None) -> Settings:
        """Create settings from environment variables.

        Raises:
            ConfigurationError: unknown CANTEEN_ENV, a malformed integer,
                or JWT_SECRET missing outside development.
        """
        base_path = base_path or resolve_base_path()

        environment = os.environ.get("CANTEEN_ENV", "development").lower()
        if environment not in ENVIRONMENTS:
            raise ConfigurationError(
                f"CANTEEN_ENV must be one of {', '.join(ENVIRONMENTS)}, got '{environment}'"
            )

        jwt_secret = os.environ.get("JWT_SECRET")
        if not jwt_secret:
            if environment != "development":
                raise ConfigurationError("JWT_SECRET not configured")
            logger.warning("JWT_SECRET not set, using the development secret")
            jwt_secret = DEV_SECRET

        try:
            jwt_expires_in = int(os.environ.get("JWT_EXPIRES_IN", str(DEFAULT_TOKEN_TTL)))
        except ValueError:
            raise ConfigurationError("JWT_EXPIRES_IN must be an integer number of seconds")

        metadata_path = os.environ.get("CANTEEN_METADATA_PATH")

        return cls(
            environment=environment,
            database=DatabaseConfig.from_env(base_path),
            metadata_path=Path(metadata_path) if metadata_path else base_path / "metadata",
            jwt_secret=jwt_secret,
            jwt_expires_in=jwt_expires_in,
            cors_origin=os.environ.get("CORS_ORIGIN", "http://localhost:5173"),
            log_level=os.environ.get("CANTEEN_LOG_LEVEL", "INFO").upper(),
            api_prefix=os.environ.get("CANTEEN_API_PREFIX", "/api"),
        )


def configure_logging(level: str = "INFO") -> None:
    """Install a basic stream handler on the root logger."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
