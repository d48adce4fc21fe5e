"""Permission checking and row-level security for entity access.

Each action of an entity carries a rule with four flags. A rule is
evaluated in a fixed order and the first satisfied flag grants access:

    public -> admin -> authenticated -> own -> deny

``own`` compares the row's ``created_by`` with the principal's email on
row paths; on list it becomes a filter instead. Admins satisfy ``own``
on every path and are never filtered.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from canteen.auth.types import Principal
from canteen.errors import AuthenticationRequired, Forbidden
from canteen.metadata.loader import EntitySchema, PermissionRule


class Action(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of an authorization check.

    Attributes:
        allowed: Whether the action may proceed
        granted_by: The rule flag that granted access
        row_filter: Equality filter every listed row must match, if any
    """

    allowed: bool
    granted_by: str | None = None
    row_filter: dict[str, Any] | None = None


DENY = AccessDecision(allowed=False)


def evaluate_rule(
    rule: PermissionRule,
    principal: Principal | None,
    owner: str | None = None,
) -> AccessDecision:
    """Evaluate a rule against a single row owned by ``owner``."""
    if rule.public:
        return AccessDecision(allowed=True, granted_by="public")
    if rule.admin and principal is not None and principal.is_admin:
        return AccessDecision(allowed=True, granted_by="admin")
    if rule.authenticated and principal is not None:
        return AccessDecision(allowed=True, granted_by="authenticated")
    if rule.own and principal is not None:
        if principal.is_admin or (owner is not None and owner == principal.email):
            return AccessDecision(allowed=True, granted_by="own")
    return DENY


def evaluate_list_rule(rule: PermissionRule, principal: Principal | None) -> AccessDecision:
    """Evaluate a rule for a collection, compiling ``own`` into a filter."""
    if rule.public:
        return AccessDecision(allowed=True, granted_by="public")
    if rule.admin and principal is not None and principal.is_admin:
        return AccessDecision(allowed=True, granted_by="admin")
    if rule.authenticated and principal is not None:
        return AccessDecision(allowed=True, granted_by="authenticated")
    if rule.own and principal is not None:
        if principal.is_admin:
            return AccessDecision(allowed=True, granted_by="own")
        return AccessDecision(
            allowed=True, granted_by="own", row_filter={"created_by": principal.email}
        )
    return DENY


def require_rule(schema: EntitySchema, action: Action) -> PermissionRule:
    """Get the rule for an action, raising Forbidden when none is declared."""
    rule = schema.permission(action.value)
    if rule is None:
        raise Forbidden(f"Action '{action.value}' not allowed for this entity")
    return rule


def _deny(principal: Principal | None) -> None:
    if principal is None:
        raise AuthenticationRequired()
    raise Forbidden()


def authorize(
    schema: EntitySchema,
    action: Action,
    principal: Principal | None,
    owner: str | None = None,
) -> AccessDecision:
    """Authorize an action on one row.

    Args:
        schema: Entity being accessed
        action: The action attempted
        principal: The caller, None when anonymous
        owner: ``created_by`` of the target row; for create, the caller's email

    Raises:
        Forbidden: No rule for the action, or a principal that no flag admits
        AuthenticationRequired: Denied with no principal
    """
    decision = evaluate_rule(require_rule(schema, action), principal, owner)
    if not decision.allowed:
        _deny(principal)
    return decision


def authorize_list(schema: EntitySchema, principal: Principal | None) -> AccessDecision:
    """Authorize listing an entity, returning the row filter to apply."""
    decision = evaluate_list_rule(require_rule(schema, Action.LIST), principal)
    if not decision.allowed:
        _deny(principal)
    return decision
