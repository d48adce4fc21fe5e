"""FastAPI application."""

from __future__ import annotations

import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from canteen.api.entities import EntityDispatcher, create_entity_router
from canteen.auth import AuthMiddleware, JWTService, PasswordService, Principal, TokenClaims
from canteen.auth.endpoints import USER_ENTITY, create_auth_router
from canteen.config import Settings
from canteen.errors import AuthenticationRequired, CanteenError
from canteen.metadata.loader import MetadataLoader
from canteen.persistence import PersistenceAdapter, create_adapter

logger = logging.getLogger(__name__)


def make_principal_loader(dispatcher: EntityDispatcher):
    """Resolve token claims against the User entity when it is registered."""

    async def load_principal(claims: TokenClaims) -> Principal | None:
        if USER_ENTITY not in dispatcher:
            return claims.to_principal()
        users = dispatcher.get(USER_ENTITY)
        row = await users.adapter.get(users.schema, claims.user_id)
        return Principal.from_row(row) if row else None

    return load_principal


def _format_request_errors(exc: RequestValidationError) -> list[str]:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return messages


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Render every error as ``{"error": ..., "kind": ...}``."""

    @app.exception_handler(CanteenError)
    async def canteen_error_handler(request: Request, exc: CanteenError) -> JSONResponse:
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationRequired) else None
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request",
                "kind": "validation_error",
                "errors": _format_request_errors(exc),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        content: dict[str, Any] = {"error": "Internal server error", "kind": "internal_error"}
        if settings.is_development:
            content["detail"] = str(exc)
            content["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
        return JSONResponse(status_code=500, content=content)


def create_app(settings: Settings | None = None, adapter: PersistenceAdapter | None = None) -> FastAPI:
    """Build the application.

    The entity registry is loaded here, so an invalid entity document
    fails before the server binds. Storage is connected and every entity
    materialized when the application starts.

    Args:
        settings: Runtime settings, read from the environment when omitted
        adapter: Storage adapter, built from ``settings.database`` when omitted

    Raises:
        ConfigurationError: Invalid settings or entity documents
    """
    settings = settings or Settings.from_env()
    registry = MetadataLoader(settings.entities_path).load_all()
    adapter = adapter or create_adapter(settings.database)
    dispatcher = EntityDispatcher(registry, adapter)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect storage and materialize entities on startup, close on shutdown."""
        await adapter.connect()
        try:
            await dispatcher.materialize_all()
            yield
        finally:
            await adapter.close()

    app = FastAPI(title="Canteen API", lifespan=lifespan)
    app.state.settings = settings
    app.state.dispatcher = dispatcher

    jwt_service = JWTService(settings.jwt_secret, expires_in=settings.jwt_expires_in)
    app.state.jwt_service = jwt_service

    # Added first so it runs inside CORS
    app.add_middleware(
        AuthMiddleware,
        jwt_service=jwt_service,
        load_principal=make_principal_loader(dispatcher),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, settings)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    app.include_router(create_entity_router(dispatcher), prefix=settings.api_prefix)

    if USER_ENTITY in dispatcher:
        auth_router = create_auth_router(
            jwt_service=jwt_service,
            password_service=PasswordService(),
            dispatcher=dispatcher,
        )
        app.include_router(auth_router, prefix=settings.api_prefix)
    else:
        logger.warning("No %s entity registered; auth endpoints disabled", USER_ENTITY)

    return app
