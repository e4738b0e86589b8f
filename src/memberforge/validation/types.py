"""Core types for the memberforge validation system.

Validation runs in two layers:
- Field level: format, range and choice checks on a single value
- Cross-field: rules that look at several fields of the same record

Both layers report ValidationIssue objects. Issues are collected into a
ValidationResult instead of being raised, so callers see every problem
in one pass.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class Severity(Enum):
    """Validation result severity.

    ERROR: Blocks the save operation
    WARNING: Reported to the caller, never blocks the save
    """

    ERROR = "error"
    WARNING = "warning"


class Operation(Enum):
    """The type of operation being validated."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ValidationIssue:
    """A single validation error or warning.

    Attributes:
        message: Human-readable message
        code: Machine-readable code (e.g., "INVALID_DATE_RANGE")
        field: Field name this issue relates to, or None for record-level issues
        severity: ERROR blocks save, WARNING does not
        rule: Name of the cross-field rule that produced the issue, if any
    """

    message: str
    code: str
    field: str | None = None
    severity: Severity = Severity.ERROR
    rule: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "field": self.field,
            "severity": self.severity.value,
            "rule": self.rule,
        }


@dataclass
class ValidationContext:
    """Context passed to cross-field rules.

    Attributes:
        entity_name: Name of the entity being validated
        record: The data being validated (defaults applied; merged with the
            stored record on update)
        operation: CREATE or UPDATE
        original_record: For UPDATE, the stored record before the change
        changed_fields: For UPDATE, the keys present in the update payload
        today: The current date, truncated to day granularity
        lookups: Facts loaded from storage before validation (rules never
            do I/O themselves)
    """

    entity_name: str
    record: dict[str, Any]
    operation: Operation
    original_record: dict[str, Any] | None = None
    changed_fields: frozenset[str] | None = None
    today: date = field(default_factory=date.today)
    lookups: dict[str, Any] = field(default_factory=dict)

    def value(self, name: str) -> Any:
        return self.record.get(name)


@dataclass
class ValidationResult:
    """Result of validating a record.

    `ok` is derived from `errors`; warnings never affect it.
    """

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationResult":
        """Split a flat issue list by severity, preserving order."""
        return cls(
            errors=[i for i in issues if i.severity == Severity.ERROR],
            warnings=[i for i in issues if i.severity == Severity.WARNING],
        )

    def error_messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def warning_messages(self) -> list[str]:
        return [w.message for w in self.warnings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }
