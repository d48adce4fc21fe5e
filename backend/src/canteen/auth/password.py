"""Password hashing service."""

from passlib.context import CryptContext


class PasswordService:
    """Service for hashing and verifying passwords.

    Uses passlib's CryptContext with PBKDF2-SHA256, which needs no native
    backend, with automatic salt generation and a configurable work factor.
    """

    def __init__(self, rounds: int = 29000):
        """Initialize the password service.

        Args:
            rounds: PBKDF2 iteration count
        """
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password, returning the modular crypt string."""
        return self._context.hash(password)

    def verify(self, password: str, hash: str | None) -> bool:
        """Verify a password against a hash. Unknown or empty hashes never match."""
        if not hash:
            return False
        try:
            return self._context.verify(password, hash)
        except ValueError:
            return False
