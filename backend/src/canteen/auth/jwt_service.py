"""JWT token generation and validation service."""

import time

import jwt

from canteen.auth.types import Principal, TokenClaims
from canteen.config import DEFAULT_TOKEN_TTL


class JWTError(Exception):
    """Base exception for JWT-related errors."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid or malformed."""

    pass


class JWTService:
    """Service for generating and validating access tokens.

    Uses HS256 algorithm with a shared secret key.
    """

    def __init__(
        self,
        secret_key: str,
        expires_in: int = DEFAULT_TOKEN_TTL,
        algorithm: str = "HS256",
    ):
        """Initialize the JWT service.

        Args:
            secret_key: Secret key for signing tokens
            expires_in: Token lifetime in seconds
            algorithm: JWT algorithm (default HS256)
        """
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.expires_in = expires_in

    def generate_token(self, principal: Principal) -> str:
        """Issue an access token for a principal."""
        now = int(time.time())
        claims = {
            "sub": principal.id,
            "email": principal.email,
            "role": principal.role,
            "iat": now,
            "exp": now + self.expires_in,
        }
        if principal.full_name:
            claims["name"] = principal.full_name

        return jwt.encode(claims, self._secret_key, algorithm=self._algorithm)

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate a token.

        Raises:
            TokenExpiredError: If the token has expired
            InvalidTokenError: If the token is invalid or malformed
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        return TokenClaims(
            user_id=str(payload.get("sub", "")),
            email=payload.get("email"),
            role=payload.get("role"),
            name=payload.get("name"),
            exp=payload.get("exp", 0),
            iat=payload.get("iat", 0),
        )
