"""Authentication and entity authorization for the canteen API."""

from canteen.auth.types import ADMIN_ROLE, STUDENT_ROLE, Principal, TokenClaims
from canteen.auth.password import PasswordService
from canteen.auth.jwt_service import JWTService
from canteen.auth.middleware import AuthMiddleware, get_principal
from canteen.auth.dependencies import (
    get_current_principal,
    require_admin,
    require_principal,
)
from canteen.auth.permissions import (
    AccessDecision,
    Action,
    authorize,
    authorize_list,
)

__all__ = [
    "ADMIN_ROLE",
    "STUDENT_ROLE",
    "Principal",
    "TokenClaims",
    "PasswordService",
    "JWTService",
    "AuthMiddleware",
    "get_principal",
    "get_current_principal",
    "require_admin",
    "require_principal",
    "AccessDecision",
    "Action",
    "authorize",
    "authorize_list",
]
