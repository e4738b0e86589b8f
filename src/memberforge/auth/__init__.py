"""Actor context and role-based permission checks.

Authentication happens upstream; this package only decides what an
already-identified actor may do.
"""

from memberforge.auth.permissions import (
    ROLE_HIERARCHY,
    apply_field_read_policy,
    apply_field_write_policy,
    can_perform,
)
from memberforge.auth.types import ActorContext, EntityPermissions, FieldPolicy

__all__ = [
    "ActorContext",
    "EntityPermissions",
    "FieldPolicy",
    "ROLE_HIERARCHY",
    "apply_field_read_policy",
    "apply_field_write_policy",
    "can_perform",
]
