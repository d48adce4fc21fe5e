"""Type definitions for authentication."""

from dataclasses import dataclass
from typing import Any

ADMIN_ROLE = "admin"
STUDENT_ROLE = "student"


@dataclass(frozen=True)
class Principal:
    """The authenticated actor of a request.

    Attributes:
        id: User id
        email: Email address, also the ownership key stamped into created_by
        role: "admin" or "student"
        full_name: Display name
    """

    id: str
    email: str
    role: str = STUDENT_ROLE
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Principal":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            role=row.get("role") or STUDENT_ROLE,
            full_name=row.get("full_name"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "full_name": self.full_name,
        }


@dataclass
class TokenClaims:
    """Claims embedded in an access token.

    Attributes:
        user_id: The user's id (``sub``)
        email: The user's email at issue time
        role: The user's role at issue time
        name: The user's display name at issue time
        exp: Expiration timestamp
        iat: Issued-at timestamp
    """

    user_id: str
    email: str | None = None
    role: str | None = None
    name: str | None = None
    exp: int = 0
    iat: int = 0

    def to_principal(self) -> Principal | None:
        if not self.user_id or not self.email:
            return None
        return Principal(
            id=self.user_id,
            email=self.email,
            role=self.role or STUDENT_ROLE,
            full_name=self.name,
        )
