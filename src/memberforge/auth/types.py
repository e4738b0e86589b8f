"""Type definitions for actors and entity permissions."""

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class ActorContext:
    """The caller of a service operation, resolved upstream.

    Attributes:
        user_id: The acting user's id
        tenant_id: The active tenant; every record read or written belongs to it
        role: Privilege role name ("owner", "admin" or "main")
    """

    user_id: str
    tenant_id: str | None = None
    role: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"userId": self.user_id, "tenantId": self.tenant_id, "role": self.role}


@dataclass(frozen=True)
class FieldPolicy:
    """Minimum roles for reading and writing one field."""

    read: str = "owner"
    write: str = "owner"


@dataclass(frozen=True)
class EntityPermissions:
    """Minimum role per operation, plus per-field policies."""

    read: str = "owner"
    create: str = "owner"
    update: str = "admin"
    delete: str = "admin"
    field_policies: Mapping[str, FieldPolicy] = field(default_factory=dict)

    def threshold(self, operation: str) -> str:
        return {
            "read": self.read,
            "create": self.create,
            "update": self.update,
            "delete": self.delete,
        }[operation]
