"""Permission checking for entity access."""

from __future__ import annotations

from typing import Any

from memberforge.auth.types import ActorContext, EntityPermissions


# Role hierarchy - higher number = more permissions
# Higher roles automatically have all permissions of lower roles
ROLE_HIERARCHY = {
    "owner": 1,
    "admin": 2,
    "main": 3,
}


def _role_level(role: str | None) -> int:
    """Return numeric level for a role name, 0 if unknown/None."""
    return ROLE_HIERARCHY.get((role or "").lower(), 0)


def can_perform(
    operation: str,
    actor: ActorContext | None,
    permissions: EntityPermissions,
) -> tuple[bool, str | None]:
    """Check if the actor can perform an operation on an entity.

    Args:
        operation: "read", "create", "update", or "delete"
        actor: The calling actor (None if unresolved)
        permissions: The entity's role thresholds

    Returns:
        Tuple of (allowed, error_message). error_message is None if allowed.
    """
    if actor is None or not actor.user_id:
        return False, "Actor required"

    if not actor.tenant_id:
        return False, "No active tenant"

    user_level = _role_level(actor.role)
    if user_level == 0:
        return False, "Unknown role"

    required_role = permissions.threshold(operation)
    if user_level < _role_level(required_role):
        return False, f"{required_role.capitalize()} role or higher required to {operation} records"

    return True, None


def apply_field_read_policy(
    record: dict[str, Any],
    permissions: EntityPermissions,
    actor: ActorContext | None,
) -> dict[str, Any]:
    """Strip fields the actor cannot read from a record dict."""
    user_level = _role_level(actor.role if actor else None)
    return {
        key: value
        for key, value in record.items()
        if key not in permissions.field_policies
        or user_level >= _role_level(permissions.field_policies[key].read)
    }


def apply_field_write_policy(
    data: dict[str, Any],
    permissions: EntityPermissions,
    actor: ActorContext | None,
) -> tuple[dict[str, Any], list[str]]:
    """Remove fields the actor cannot write.

    Returns:
        (allowed data, names of the removed fields)
    """
    user_level = _role_level(actor.role if actor else None)
    allowed: dict[str, Any] = {}
    removed: list[str] = []
    for key, value in data.items():
        policy = permissions.field_policies.get(key)
        if policy is not None and user_level < _role_level(policy.write):
            removed.append(key)
        else:
            allowed[key] = value
    return allowed, removed
