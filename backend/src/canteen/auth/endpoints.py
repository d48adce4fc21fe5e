"""Authentication API endpoints.

Users are rows of the ``User`` entity; these endpoints only add the
credential handling the generic entity routes cannot do: hashing the
password on registration, verifying it on login and issuing tokens.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from canteen.auth.dependencies import require_principal
from canteen.auth.jwt_service import JWTService
from canteen.auth.password import PasswordService
from canteen.auth.types import STUDENT_ROLE, Principal
from canteen.errors import AuthenticationRequired, NotFound, ValidationFailed
from canteen.validation import validate

if TYPE_CHECKING:
    from canteen.api.entities import EntityDispatcher

logger = logging.getLogger(__name__)

USER_ENTITY = "User"
MIN_PASSWORD_LENGTH = 6

# Fields a user may change on their own row
PROFILE_FIELDS = ("full_name", "roll_number", "year", "branch", "phone", "profile_complete")


class RegisterRequest(BaseModel):
    """Request body for self-registration."""

    email: str
    password: str
    full_name: str


class LoginRequest(BaseModel):
    """Request body for login."""

    email: str
    password: str


class TokenResponse(BaseModel):
    """Response body for register and login."""

    token: str
    user: dict[str, Any]


def create_auth_router(
    jwt_service: JWTService,
    password_service: PasswordService,
    dispatcher: EntityDispatcher,
) -> APIRouter:
    """Create the auth router with injected dependencies.

    Args:
        jwt_service: JWT service for token operations
        password_service: Password service for hashing and verification
        dispatcher: Entity dispatcher holding the User entity

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/auth", tags=["auth"])
    users = dispatcher.get(USER_ENTITY)

    async def find_by_email(email: str) -> dict[str, Any] | None:
        rows = await users.adapter.query(users.schema, filters={"email": email}, limit=1)
        return rows[0] if rows else None

    @router.post("/register", status_code=201)
    async def register(request: RegisterRequest) -> TokenResponse:
        """Register a student account and return a token.

        Raises:
            ValidationFailed: Short password, invalid fields or email taken
        """
        if len(request.password) < MIN_PASSWORD_LENGTH:
            raise ValidationFailed(
                [f"Password must be at least {MIN_PASSWORD_LENGTH} characters"]
            )

        data = {
            "email": request.email,
            "password": password_service.hash(request.password),
            "full_name": request.full_name,
            "role": STUDENT_ROLE,
        }
        result = validate(users.schema, data)
        if not result.valid:
            raise ValidationFailed(result.errors)

        if await find_by_email(request.email) is not None:
            raise ValidationFailed(["User already exists"], message="User already exists")

        row = await users.adapter.insert(users.schema, users.new_row(data, request.email))
        logger.info("Registered user %s", row["id"])

        principal = Principal.from_row(row)
        return TokenResponse(token=jwt_service.generate_token(principal), user=users.project(row))

    @router.post("/login")
    async def login(request: LoginRequest) -> TokenResponse:
        """Verify credentials and return a token.

        Raises:
            AuthenticationRequired: Unknown email or wrong password
        """
        row = await find_by_email(request.email)
        if row is None or not password_service.verify(request.password, row.get("password")):
            raise AuthenticationRequired("Invalid credentials")

        principal = Principal.from_row(row)
        return TokenResponse(token=jwt_service.generate_token(principal), user=users.project(row))

    @router.get("/is-authenticated")
    async def is_authenticated(
        principal: Principal = Depends(require_principal),
    ) -> dict[str, Any]:
        return {"authenticated": True, "user": principal.to_dict()}

    @router.get("/me")
    async def get_me(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
        """Return the caller's own user row."""
        row = await users.adapter.get(users.schema, principal.id)
        if row is None:
            raise NotFound("User not found")
        return users.project(row)

    @router.put("/me")
    async def update_me(
        body: dict[str, Any] = Body(...),
        principal: Principal = Depends(require_principal),
    ) -> dict[str, Any]:
        """Update the caller's profile fields. Role, email and balance are not writable here."""
        values = {name: body[name] for name in PROFILE_FIELDS if name in body}
        if not values:
            raise ValidationFailed(
                ["No valid fields to update"], message="No valid fields to update"
            )
        result = validate(users.schema, values, is_update=True)
        if not result.valid:
            raise ValidationFailed(result.errors)

        values["updated_date"] = datetime.now(timezone.utc)
        row = await users.adapter.update(users.schema, principal.id, values)
        if row is None:
            raise NotFound("User not found")
        return users.project(row)

    return router
