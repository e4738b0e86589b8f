"""Generic CRUD orchestration for one entity.

Every write follows the same path:
permission check -> sanitize and defaults -> validate -> build ->
map to storage -> persist -> map back -> invalidate cache -> emit event.

Reads are retried on storage failure; writes never are.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from memberforge.auth import (
    ActorContext,
    apply_field_read_policy,
    apply_field_write_policy,
    can_perform,
)
from memberforge.cache import RecordCache, aggregate_key, entity_key
from memberforge.entities.definition import EntityDefinition
from memberforge.entities.refs import ByInternalId, EntityRef, parse_ref
from memberforge.errors import (
    AppError,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
    ValidationError,
    new_operation_id,
)
from memberforge.events import EntityEvent, EventService, compute_changes
from memberforge.persistence.adapter import Repository
from memberforge.persistence.query import Condition, FilterOp, ListQuery, Page
from memberforge.validation import (
    EntityLifecycle,
    LifecycleResult,
    Operation,
    ValidationIssue,
    ValidationResult,
)
from memberforge.validation.values import is_blank

logger = logging.getLogger(__name__)

E = TypeVar("E")
T = TypeVar("T")

MAX_PAGE_SIZE = 100
READ_RETRIES = 2
MAX_BULK_ITEMS = 100


# =============================================================================
# Results
# =============================================================================


@dataclass
class SaveResult(Generic[E]):
    """A persisted entity plus the warnings its validation produced."""

    entity: E
    warnings: list[ValidationIssue] = field(default_factory=list)


@dataclass
class BulkItemResult:
    index: int
    entity: Any = None
    warnings: list[ValidationIssue] = field(default_factory=list)
    error: AppError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BulkResult:
    items: list[BulkItemResult] = field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return len(self.items) - self.created


# =============================================================================
# Entity Service
# =============================================================================


class EntityService(Generic[E]):
    """Runs create, read, update, soft delete and list for one entity definition."""

    def __init__(
        self,
        definition: EntityDefinition,
        repository: Repository,
        *,
        events: EventService | None = None,
        cache: RecordCache | None = None,
        lifecycle: EntityLifecycle | None = None,
        max_page_size: int = MAX_PAGE_SIZE,
        read_retries: int = READ_RETRIES,
        today: Callable[[], date] = date.today,
    ):
        self.definition = definition
        self.repository = repository
        self.events = events if events is not None else EventService()
        self.cache = cache if cache is not None else RecordCache()
        self.lifecycle = lifecycle or EntityLifecycle()
        self.max_page_size = min(max_page_size, MAX_PAGE_SIZE)
        self.read_retries = max(0, read_retries)
        self.today = today

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def validate(
        self,
        candidate: dict[str, Any],
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> ValidationResult:
        """Dry-run a create: defaults and validation, nothing persisted."""
        op_id = operation_id or new_operation_id("validate")
        self._authorize("create", actor, op_id)
        data = self._writable(candidate, actor)
        lookups = await self._lookups(data, actor, op_id)
        prepared = self._prepare(data, Operation.CREATE, lookups=lookups)
        return prepared.validation

    async def create(
        self,
        candidate: dict[str, Any],
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> SaveResult[E]:
        op_id = operation_id or new_operation_id("create")
        self._authorize("create", actor, op_id)

        data = self._writable(candidate, actor)
        lookups = await self._lookups(data, actor, op_id)
        prepared = self._prepare(data, Operation.CREATE, lookups=lookups)
        self._raise_if_invalid(prepared.validation, "create", op_id)

        row = self._to_row({**prepared.record, "tenantId": actor.tenant_id}, op_id)
        stored = await self._write("create", op_id, self.repository.create, row)
        created = self._read_back(stored, op_id)

        self._invalidate(created)
        await self._emit(
            Operation.CREATE,
            created,
            actor,
            tuple(sorted(k for k, v in prepared.record.items() if not is_blank(v))),
        )
        logger.info(
            "Created %s %s - Operation: %s", self.definition.name, created.business_id, op_id
        )
        return SaveResult(created, list(prepared.validation.warnings))

    async def get(
        self,
        ref: EntityRef | str,
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> E:
        op_id = operation_id or new_operation_id("get")
        self._authorize("read", actor, op_id)
        ref = parse_ref(ref) if isinstance(ref, str) else ref

        if isinstance(ref, ByInternalId):
            cached = self.cache.get(self._entity_key(actor.tenant_id, ref.value))
            if cached is not None:
                return cached

        entity = await self._load(ref, actor, op_id)
        self.cache.set(self._entity_key(actor.tenant_id, entity.id), entity)
        return entity

    async def update(
        self,
        ref: EntityRef | str,
        changes: dict[str, Any],
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> SaveResult[E]:
        """Apply a partial update.

        Only fields present in `changes` are validated at field level, and
        only rules reading one of them run, against the merged record.
        """
        op_id = operation_id or new_operation_id("update")
        self._authorize("update", actor, op_id)

        existing = await self._load(ref, actor, op_id)
        data = self._writable(changes, actor)
        if not data:
            return SaveResult(existing)

        original = self.definition.to_record(existing)
        prepared = self._prepare(data, Operation.UPDATE, original=original)
        self._raise_if_invalid(prepared.validation, "update", op_id)

        row = self._to_row(prepared.record, op_id)
        stored = await self._write("update", op_id, self.repository.update, existing.id, row)
        if stored is None:
            raise NotFoundError(operation_id=op_id)
        saved = self._read_back(stored, op_id)

        self._invalidate(existing, saved)
        changed = compute_changes(self.definition.to_record(saved), original) or {}
        changed.pop("updatedAt", None)
        await self._emit(Operation.UPDATE, saved, actor, tuple(sorted(changed)))
        logger.info(
            "Updated %s %s (%s) - Operation: %s",
            self.definition.name,
            saved.business_id,
            ",".join(sorted(changed)) or "no changes",
            op_id,
        )
        return SaveResult(saved, list(prepared.validation.warnings))

    async def delete(
        self,
        ref: EntityRef | str,
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> bool:
        """Soft delete: mark the record inactive. Deleting twice is a no-op."""
        op_id = operation_id or new_operation_id("delete")
        self._authorize("delete", actor, op_id)

        existing = await self._load(ref, actor, op_id)
        record = self.definition.to_record(existing)
        status_field = self.definition.status_field
        if record.get(status_field) == self.definition.inactive_value:
            logger.debug("%s %s already inactive", self.definition.name, existing.business_id)
            return True

        record[status_field] = self.definition.inactive_value
        row = self._to_row(record, op_id)
        stored = await self._write("delete", op_id, self.repository.update, existing.id, row)
        if stored is None:
            raise NotFoundError(operation_id=op_id)
        deleted = self._read_back(stored, op_id)

        self._invalidate(existing)
        await self._emit(Operation.DELETE, deleted, actor, (status_field,))
        logger.info(
            "Deactivated %s %s - Operation: %s", self.definition.name, deleted.business_id, op_id
        )
        return True

    async def list(
        self,
        query: ListQuery,
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> Page[E]:
        """List the actor's tenant records matching `query`.

        The page size is clamped to the service maximum and `total`
        counts every match, not just the returned page.
        """
        op_id = operation_id or new_operation_id("list")
        self._authorize("read", actor, op_id)
        query = query.clamped(self.max_page_size)
        self._check_conditions(query.conditions, op_id)

        scoped = query.with_conditions(*self._scope_conditions(actor, query.include_inactive))
        rows, total = await self._read("list", op_id, self.repository.list, scoped)
        return Page(
            items=self._read_rows(rows),
            total=total,
            page=query.page,
            page_size=query.page_size,
        )

    async def list_for_parent(
        self,
        kind: str,
        parent_id: str,
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> list[E]:
        """All records (active or not) of one parent, e.g. one account.

        Cached under the parent aggregate key until a write touches it.
        """
        op_id = operation_id or new_operation_id("list")
        self._authorize("read", actor, op_id)
        parent_field = self.definition.parent_fields.get(kind)
        if parent_field is None:
            raise ValidationError(f"Unknown parent kind '{kind}'", operation_id=op_id)

        key = aggregate_key(self.definition.cache_prefix, actor.tenant_id, kind, parent_id)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached)

        conditions = self._scope_conditions(actor, include_inactive=True)
        conditions.append(Condition(parent_field, FilterOp.EQ, parent_id))
        items: list[E] = []
        page = 1
        while True:
            query = ListQuery(tuple(conditions), page=page, page_size=self.max_page_size)
            rows, total = await self._read("list", op_id, self.repository.list, query)
            items.extend(self._read_rows(rows))
            if not rows or page * self.max_page_size >= total:
                break
            page += 1

        self.cache.set(key, tuple(items))
        return items

    async def bulk_create(
        self,
        candidates: Sequence[dict[str, Any]],
        actor: ActorContext | None,
        operation_id: str | None = None,
    ) -> BulkResult:
        """Create each candidate in order.

        A failing item is reported and the rest continue; items already
        committed stay committed.
        """
        op_id = operation_id or new_operation_id("bulk")
        self._authorize("create", actor, op_id)
        if len(candidates) > MAX_BULK_ITEMS:
            raise ValidationError(
                f"Bulk requests are limited to {MAX_BULK_ITEMS} items", operation_id=op_id
            )

        result = BulkResult()
        for index, candidate in enumerate(candidates):
            try:
                saved = await self.create(candidate, actor, operation_id=f"{op_id}-{index}")
            except AppError as e:
                result.items.append(BulkItemResult(index=index, error=e))
                continue
            result.items.append(
                BulkItemResult(index=index, entity=saved.entity, warnings=saved.warnings)
            )

        logger.info(
            "Bulk create %s: %d created, %d failed - Operation: %s",
            self.definition.name,
            result.created,
            result.failed,
            op_id,
        )
        return result

    def present(self, entity: E, actor: ActorContext | None) -> dict[str, Any]:
        """Shape an entity for a response: record, derived fields, field policy."""
        record = self.definition.to_record(entity)
        if self.definition.derive is not None:
            record.update(self.definition.derive(entity, self.today()))
        return apply_field_read_policy(record, self.definition.permissions, actor)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _authorize(self, operation: str, actor: ActorContext | None, op_id: str) -> None:
        allowed, error = can_perform(operation, actor, self.definition.permissions)
        if not allowed:
            logger.info(
                "Denied %s on %s for %s: %s - Operation: %s",
                operation,
                self.definition.name,
                actor.user_id if actor else None,
                error,
                op_id,
            )
            raise PermissionDeniedError(error or "Permission denied", operation_id=op_id)

    def _writable(self, data: dict[str, Any], actor: ActorContext | None) -> dict[str, Any]:
        """Drop system keys and fields the actor may not write."""
        dropped = [k for k in data if k in self.definition.system_fields]
        clean = {k: v for k, v in data.items() if k not in self.definition.system_fields}
        clean, removed = apply_field_write_policy(clean, self.definition.permissions, actor)
        if dropped or removed:
            logger.debug("Ignored non-writable fields: %s", ", ".join(dropped + removed))
        return clean

    def _prepare(
        self,
        data: dict[str, Any],
        operation: Operation,
        original: dict[str, Any] | None = None,
        lookups: dict[str, Any] | None = None,
    ) -> LifecycleResult:
        return self.lifecycle.prepare(
            data,
            operation,
            self.definition.name,
            self.definition.fields,
            self.definition.rules,
            self.definition.defaults,
            original=original,
            today=self.today(),
            lookups=lookups,
        )

    def _raise_if_invalid(self, result: ValidationResult, label: str, op_id: str) -> None:
        if result.ok:
            return
        logger.info(
            "%s %s rejected: %s - Operation: %s",
            self.definition.name,
            label,
            "; ".join(result.error_messages()),
            op_id,
        )
        raise ValidationError.from_result(result, op_id)

    async def _lookups(
        self, data: dict[str, Any], actor: ActorContext, op_id: str
    ) -> dict[str, Any]:
        if self.definition.lookups is None:
            return {}
        record = self.lifecycle.defaulting_service.sanitize(data)
        return await self._read(
            "lookup",
            op_id,
            self.definition.lookups,
            self.repository,
            self.definition.mapper,
            record,
            actor.tenant_id,
        )

    async def _load(self, ref: EntityRef | str, actor: ActorContext, op_id: str) -> E:
        """Resolve a reference to an entity of the actor's tenant.

        Malformed, absent and foreign-tenant references all raise the same
        NotFoundError.
        """
        ref = parse_ref(ref) if isinstance(ref, str) else ref
        if isinstance(ref, ByInternalId):
            row = await self._read("find_by_id", op_id, self.repository.find_by_id, ref.value)
        elif ref.value and self.definition.is_business_id(ref.value):
            row = await self._read(
                "find_by_business_id", op_id, self.repository.find_by_business_id, ref.value
            )
        else:
            row = None

        if row is None:
            raise NotFoundError(operation_id=op_id)
        entity = self._read_back(row, op_id)
        if entity.tenant_id != actor.tenant_id:
            logger.info(
                "Cross-tenant access to %s %s refused - Operation: %s",
                self.definition.name,
                entity.business_id,
                op_id,
            )
            raise NotFoundError(operation_id=op_id)
        return entity

    async def _read(
        self, label: str, op_id: str, fn: Callable[..., Awaitable[T]], *args: Any
    ) -> T:
        attempts = self.read_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await fn(*args)
            except StorageError as e:
                if e.conflict or attempt == attempts:
                    raise self._storage_failure(e, label, op_id) from e
                logger.warning(
                    "Storage %s failed (attempt %d/%d), retrying - Operation: %s",
                    label,
                    attempt,
                    attempts,
                    op_id,
                )

    async def _write(
        self, label: str, op_id: str, fn: Callable[..., Awaitable[T]], *args: Any
    ) -> T:
        try:
            return await fn(*args)
        except StorageError as e:
            raise self._storage_failure(e, label, op_id) from e

    def _storage_failure(self, error: StorageError, label: str, op_id: str) -> AppError:
        if error.conflict:
            logger.info(
                "%s %s conflicts with an existing record - Operation: %s",
                self.definition.name,
                label,
                op_id,
            )
            message = self.definition.duplicate_message
            return ValidationError(
                message,
                issues=[ValidationIssue(message=message, code="DUPLICATE")],
                operation_id=op_id,
            )
        logger.error(
            "Storage %s failed for %s: %s - Operation: %s",
            label,
            self.definition.name,
            error.detail or error.message,
            op_id,
        )
        return StorageError(detail=error.detail, operation_id=op_id)

    def _to_row(self, record: dict[str, Any], op_id: str) -> dict[str, Any]:
        """Build the entity and encode it for storage.

        Raises:
            ValidationError: A value passed validation but cannot be stored
        """
        try:
            return self.definition.mapper.to_external(self.definition.build(record))
        except ValueError as e:
            logger.warning(
                "%s could not be encoded: %s - Operation: %s", self.definition.name, e, op_id
            )
            raise ValidationError(str(e), operation_id=op_id) from None

    def _read_back(self, row: dict[str, Any] | None, op_id: str) -> E:
        entity = self.definition.mapper.to_internal(row) if row is not None else None
        if entity is None:
            logger.error(
                "Stored %s could not be read back - Operation: %s", self.definition.name, op_id
            )
            raise StorageError(operation_id=op_id)
        return entity

    def _read_rows(self, rows: list[dict[str, Any]]) -> list[E]:
        items = []
        for row in rows:
            entity = self.definition.mapper.to_internal(row)
            if entity is not None:
                items.append(entity)
        return items

    def _scope_conditions(self, actor: ActorContext, include_inactive: bool) -> list[Condition]:
        conditions = [Condition("tenantId", FilterOp.EQ, actor.tenant_id)]
        if not include_inactive:
            conditions.append(
                Condition(self.definition.status_field, FilterOp.EQ, self.definition.active_value)
            )
        return conditions

    def _check_conditions(self, conditions: Sequence[Condition], op_id: str) -> None:
        mapper = self.definition.mapper
        for condition in conditions:
            try:
                mapper.column_for(condition.field)
                if condition.op == FilterOp.CONTAINS and not mapper.is_text(condition.field):
                    raise ValidationError(
                        f"Filter '{condition.field}' does not support contains",
                        operation_id=op_id,
                    )
                if condition.op == FilterOp.IN:
                    for value in condition.value:
                        mapper.encode_value(condition.field, value)
                elif condition.op == FilterOp.EQ:
                    mapper.encode_value(condition.field, condition.value)
            except KeyError:
                raise ValidationError(
                    f"Unknown filter field '{condition.field}'", operation_id=op_id
                ) from None
            except ValueError:
                raise ValidationError(
                    f"Invalid filter value for '{condition.field}'", operation_id=op_id
                ) from None

    def _entity_key(self, tenant_id: str, id: str) -> str:
        return entity_key(self.definition.cache_prefix, tenant_id, id)

    def _invalidate(self, *entities: E) -> None:
        keys: list[str] = []
        for entity in entities:
            keys.append(self._entity_key(entity.tenant_id, entity.id))
            record = self.definition.to_record(entity)
            for kind, parent_field in self.definition.parent_fields.items():
                parent_id = record.get(parent_field)
                if not is_blank(parent_id):
                    keys.append(
                        aggregate_key(self.definition.cache_prefix, entity.tenant_id, kind, parent_id)
                    )
        self.cache.invalidate(*keys)

    async def _emit(
        self,
        operation: Operation,
        entity: E,
        actor: ActorContext,
        changed_fields: tuple[str, ...],
    ) -> None:
        await self.events.emit(
            EntityEvent(
                entity=self.definition.name,
                entity_id=entity.id,
                business_id=entity.business_id,
                tenant_id=entity.tenant_id,
                operation=operation,
                changed_fields=changed_fields,
                actor_id=actor.user_id,
            )
        )
