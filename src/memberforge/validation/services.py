"""Validation and defaulting services for memberforge.

This module provides the services that run before anything is persisted:
1. DefaultingService: Sanitizes input and applies defaults in order
2. ValidationService: Runs field specs and cross-field rules
3. EntityLifecycle: Coordinates the two for create and update
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from memberforge.validation.fields import FieldSpec
from memberforge.validation.rules import Rule
from memberforge.validation.types import (
    Operation,
    Severity,
    ValidationContext,
    ValidationIssue,
    ValidationResult,
)
from memberforge.validation.values import is_blank

logger = logging.getLogger(__name__)


# =============================================================================
# Defaulting Types
# =============================================================================


class DefaultPolicy(Enum):
    """Policy for when to apply a default value."""

    DEFAULT = "default"  # Only apply when value is null or empty
    OVERWRITE = "overwrite"  # Always apply, replacing existing value


@dataclass(frozen=True)
class DefaultDefinition:
    """A default rule for one field.

    Attributes:
        field: The field to apply the default to
        value: Static value (used when no compute function is given)
        compute: Function of (record, today) producing the value. A None
            result leaves the field untouched.
        policy: When to apply (default or overwrite)
        on: Operations this default applies to
    """

    field: str
    value: Any = None
    compute: Callable[[Mapping[str, Any], date], Any] | None = None
    policy: DefaultPolicy = DefaultPolicy.DEFAULT
    on: tuple[Operation, ...] = (Operation.CREATE,)


# =============================================================================
# Defaulting Service
# =============================================================================


class DefaultingService:
    """Service for sanitizing records and applying defaults.

    Defaults are applied in declared order because they may depend on
    values computed by earlier defaults.
    """

    def sanitize(self, record: Mapping[str, Any]) -> dict[str, Any]:
        """Trim text values and turn blank text into None.

        Nested mappings (tagged choices) are trimmed one level deep.
        """
        result: dict[str, Any] = {}
        for key, value in record.items():
            if isinstance(value, Mapping):
                result[key] = {k: _clean(v) for k, v in value.items()}
            else:
                result[key] = _clean(value)
        return result

    def apply_defaults(
        self,
        record: Mapping[str, Any],
        defaults: Iterable[DefaultDefinition],
        operation: Operation,
        today: date | None = None,
    ) -> dict[str, Any]:
        """Apply defaults to a record.

        Args:
            record: The record to apply defaults to
            defaults: Default definitions (in order)
            operation: The current operation (CREATE, UPDATE)
            today: Current date handed to computed defaults

        Returns:
            New record with defaults applied
        """
        result = dict(record)
        today = today or date.today()

        for default_def in defaults:
            if operation not in default_def.on:
                continue

            if default_def.policy == DefaultPolicy.DEFAULT:
                if not is_blank(result.get(default_def.field)):
                    continue

            if default_def.compute is not None:
                computed = default_def.compute(result, today)
                if computed is not None:
                    result[default_def.field] = computed
            elif default_def.value is not None:
                result[default_def.field] = default_def.value

        return result


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


# =============================================================================
# Validation Service
# =============================================================================


class ValidationService:
    """Runs field specs, then cross-field rules, and collects every issue.

    On UPDATE only the field specs named in `ctx.changed_fields` run, and
    only rules reading one of those fields. A rule that raises is reported
    as a RULE_ERROR issue instead of aborting the whole validation.
    """

    def validate(
        self,
        ctx: ValidationContext,
        field_specs: Iterable[FieldSpec],
        rules: Iterable[Rule],
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []

        for spec in field_specs:
            if (
                ctx.operation == Operation.UPDATE
                and ctx.changed_fields is not None
                and spec.name not in ctx.changed_fields
            ):
                continue
            issues.extend(spec.check(ctx.record, ctx.today))

        for rule in rules:
            if not rule.applies_to(ctx):
                continue
            try:
                issues.extend(rule.evaluate(ctx))
            except Exception:
                logger.exception(
                    "Rule '%s' raised while validating %s", rule.name, ctx.entity_name
                )
                issues.append(ValidationIssue(
                    message=f"Rule '{rule.name}' could not be evaluated",
                    code="RULE_ERROR",
                    severity=Severity.ERROR,
                    rule=rule.name,
                ))

        return ValidationResult.from_issues(issues)


# =============================================================================
# Entity Lifecycle Coordinator
# =============================================================================


@dataclass
class LifecycleResult:
    """Result of the entity lifecycle (defaults + validation).

    Attributes:
        record: Full record ready to persist (merged with the original on update)
        validation: Errors and warnings found
        changes: The sanitized payload (equal to `record` on create)
    """

    record: dict[str, Any]
    validation: ValidationResult
    changes: dict[str, Any] = field(default_factory=dict)


class EntityLifecycle:
    """Coordinates the entity save lifecycle.

    Lifecycle:
    1. Sanitize input
    2. Apply defaults (in order)
    3. Validate field specs and rules
    4. Persist (done by the caller, only when valid)
    """

    def __init__(
        self,
        defaulting_service: DefaultingService | None = None,
        validation_service: ValidationService | None = None,
    ):
        self.defaulting_service = defaulting_service or DefaultingService()
        self.validation_service = validation_service or ValidationService()

    def prepare(
        self,
        record: Mapping[str, Any],
        operation: Operation,
        entity_name: str,
        field_specs: Iterable[FieldSpec],
        rules: Iterable[Rule],
        defaults: Iterable[DefaultDefinition] = (),
        original: Mapping[str, Any] | None = None,
        today: date | None = None,
        lookups: dict[str, Any] | None = None,
    ) -> LifecycleResult:
        """Prepare a record for persistence.

        Applies defaults and validates, but does not persist.

        Args:
            record: Candidate on CREATE, partial payload on UPDATE
            operation: CREATE or UPDATE
            entity_name: Name of the entity
            field_specs: Field declarations
            rules: Cross-field rules
            defaults: Default definitions
            original: Stored record (for updates)
            today: Current date
            lookups: Facts loaded from storage for rules

        Returns:
            LifecycleResult with prepared record and validation result
        """
        today = today or date.today()
        changes = self.defaulting_service.sanitize(record)

        if operation == Operation.UPDATE:
            merged = {**(original or {}), **changes}
            changed_fields: frozenset[str] | None = frozenset(changes)
        else:
            merged = dict(changes)
            changed_fields = None

        prepared = self.defaulting_service.apply_defaults(merged, defaults, operation, today)

        ctx = ValidationContext(
            entity_name=entity_name,
            record=prepared,
            operation=operation,
            original_record=dict(original) if original is not None else None,
            changed_fields=changed_fields,
            today=today,
            lookups=lookups or {},
        )
        validation = self.validation_service.validate(ctx, field_specs, rules)

        return LifecycleResult(record=prepared, validation=validation, changes=changes)
