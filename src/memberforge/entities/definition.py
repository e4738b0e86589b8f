"""Entity definitions: everything the generic service needs to know about one entity."""

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Callable, Generic, Mapping, Protocol, TypeVar

from memberforge.auth.types import EntityPermissions
from memberforge.mapping import EntityMapper
from memberforge.persistence.adapter import Repository
from memberforge.persistence.sqlite import TableSpec
from memberforge.validation.fields import FieldSpec
from memberforge.validation.rules import Rule
from memberforge.validation.services import DefaultDefinition


class StoredEntity(Protocol):
    """Attributes every validated entity exposes."""

    id: str | None
    business_id: str | None
    tenant_id: str | None


E = TypeVar("E", bound=StoredEntity)

Lookups = Callable[[Repository, EntityMapper, dict[str, Any], str], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class EntityDefinition(Generic[E]):
    """Declarative description of one entity.

    Attributes:
        name: Entity name used in logs and events
        cache_prefix: Prefix of the entity's cache keys
        fields: Field specs, checked in order
        rules: Cross-field rules, evaluated in order
        defaults: Defaults applied before validation
        table: Storage table (mapper, business id format, unique indexes)
        permissions: Role thresholds and field policies
        build: Builds the typed entity from a validated record
        to_record: Converts an entity back to a camelCase record
        system_fields: Record keys clients may never write
        parent_fields: Parent aggregate kind -> record key holding the parent id
        derive: Computed display fields for responses
        lookups: Loads storage facts create-time rules need (e.g. history)
        status_field: Record key holding the active/inactive status
        active_value: Status name of active records
        inactive_value: Status name given by soft delete
        duplicate_message: Message used when storage reports a uniqueness conflict
    """

    name: str
    cache_prefix: str
    fields: tuple[FieldSpec, ...]
    rules: tuple[Rule, ...]
    defaults: tuple[DefaultDefinition, ...]
    table: TableSpec
    permissions: EntityPermissions
    build: Callable[[dict[str, Any]], E]
    to_record: Callable[[E], dict[str, Any]]
    system_fields: frozenset[str]
    parent_fields: Mapping[str, str]
    derive: Callable[[E, date], dict[str, Any]] | None = None
    lookups: Lookups | None = None
    status_field: str = "status"
    active_value: str = "ACTIVE"
    inactive_value: str = "INACTIVE"
    duplicate_message: str = "A record with the same key already exists"

    @property
    def mapper(self) -> EntityMapper:
        return self.table.mapper

    def is_business_id(self, value: str) -> bool:
        pattern = rf"^{re.escape(self.table.id_prefix)}-\d{{{self.table.id_digits},}}$"
        return re.match(pattern, value) is not None
