"""Event types for the entity lifecycle.

Events are published after a write has been committed. They describe
what happened; consumers cannot veto or modify the write.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from memberforge.validation.types import Operation


@dataclass(frozen=True)
class EntityEvent:
    """A committed create, update or (soft) delete.

    Attributes:
        entity: Entity name (e.g., "MembershipCategory")
        entity_id: Internal id of the record
        business_id: Business id of the record
        tenant_id: Tenant the record belongs to
        operation: CREATE, UPDATE or DELETE
        changed_fields: Names of the fields the write changed
        actor_id: Id of the acting user
        timestamp: When the event was produced (UTC)
    """

    entity: str
    entity_id: str
    business_id: str | None
    tenant_id: str | None
    operation: Operation
    changed_fields: tuple[str, ...] = ()
    actor_id: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity,
            "entityId": self.entity_id,
            "businessId": self.business_id,
            "tenantId": self.tenant_id,
            "operation": self.operation.value,
            "changedFields": list(self.changed_fields),
            "actorId": self.actor_id,
            "timestamp": self.timestamp.isoformat(),
        }


def compute_changes(
    record: dict[str, Any], original: dict[str, Any] | None
) -> dict[str, Any] | None:
    """Compute a diff of changed fields between record and original.

    Returns None if original is None (create operations).
    Returns a dict of {field: new_value} for fields that differ.
    """
    if original is None:
        return None

    return {
        key: value
        for key, value in record.items()
        if key not in original or original[key] != value
    }
