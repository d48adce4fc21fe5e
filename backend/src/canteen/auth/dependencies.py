"""FastAPI dependencies for authentication."""

from fastapi import Request

from canteen.auth.middleware import get_principal
from canteen.auth.types import Principal
from canteen.errors import AuthenticationRequired, Forbidden


def get_current_principal(request: Request) -> Principal | None:
    """Dependency returning the caller, or None when anonymous.

    This is a soft dependency; use require_principal for endpoints that
    must have a caller.
    """
    return get_principal(request)


def require_principal(request: Request) -> Principal:
    """Dependency that requires authentication.

    Raises:
        AuthenticationRequired: No valid bearer token on the request
    """
    principal = get_principal(request)
    if principal is None:
        raise AuthenticationRequired()
    return principal


def require_admin(request: Request) -> Principal:
    """Dependency that requires an admin caller.

    Raises:
        AuthenticationRequired: Anonymous caller
        Forbidden: Authenticated caller without the admin role
    """
    principal = require_principal(request)
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal
