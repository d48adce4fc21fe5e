"""Authentication middleware for FastAPI."""

import logging
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from canteen.auth.jwt_service import JWTError, JWTService
from canteen.auth.types import Principal, TokenClaims

logger = logging.getLogger(__name__)

PrincipalLoader = Callable[[TokenClaims], Awaitable[Principal | None]]


async def principal_from_claims(claims: TokenClaims) -> Principal | None:
    """Resolve a principal from the token alone."""
    return claims.to_principal()


class AuthMiddleware(BaseHTTPMiddleware):
    """Middleware that resolves the Bearer token into a principal.

    The middleware:
    1. Extracts the Bearer token from the Authorization header
    2. Decodes and validates the JWT
    3. Resolves the claims into a Principal with the loader
    4. Sets request.state.principal

    A missing, invalid or expired token, or one naming an unknown user,
    leaves the request anonymous. The middleware never rejects requests;
    that is decided per action by the permission rules.
    """

    def __init__(
        self,
        app,
        jwt_service: JWTService,
        load_principal: PrincipalLoader = principal_from_claims,
    ):
        """Initialize middleware.

        Args:
            app: The ASGI application
            jwt_service: JWT service for token validation
            load_principal: Coroutine resolving verified claims to a principal
        """
        super().__init__(app)
        self._jwt_service = jwt_service
        self._load_principal = load_principal

    async def dispatch(self, request: Request, call_next) -> Response:
        request.state.principal = None

        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[7:]
            try:
                claims = self._jwt_service.decode_token(token)
            except JWTError as exc:
                logger.debug("Ignoring bearer token: %s", exc)
            else:
                request.state.principal = await self._load_principal(claims)

        return await call_next(request)


def get_principal(request: Request) -> Principal | None:
    """Get the principal from the request state, None if anonymous."""
    return getattr(request.state, "principal", None)
