"""Field-level validators.

A FieldValidator checks one raw value and nothing else. Validators are
total: any input produces True or False, never an exception. Blank values
pass every validator; whether a field must be present is declared on the
FieldSpec that owns the validators.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Callable, Mapping

from memberforge.validation.types import Severity, ValidationIssue
from memberforge.validation.values import coerce_enum, is_blank, parse_date


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


# =============================================================================
# Field Validator
# =============================================================================


@dataclass(frozen=True)
class FieldValidator:
    """A named predicate over a single value.

    Attributes:
        name: Short identifier (e.g., "range")
        predicate: Callable returning truthy for acceptable values. When
            `needs_today` is set it is called as predicate(value, today).
        failure_message: Phrase appended to the field label on failure
            (e.g., "must be a valid date (YYYY-MM-DD)")
        code: Machine-readable issue code
        needs_today: Whether the predicate compares against the current date
    """

    name: str
    predicate: Callable[..., bool]
    failure_message: str
    code: str = "INVALID_VALUE"
    needs_today: bool = False

    def validate(self, raw: Any, today: date | None = None) -> bool:
        if is_blank(raw):
            return True
        try:
            if self.needs_today:
                return bool(self.predicate(raw, today or date.today()))
            return bool(self.predicate(raw))
        except Exception:
            # Garbage input fails validation instead of escaping
            return False

    def message(self) -> str:
        return self.failure_message


def _numeric(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip())


def _pattern_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return None


def matches(pattern: str, message: str, code: str = "PATTERN_MISMATCH") -> FieldValidator:
    """Regex match against a string. Integers are matched by their decimal form."""
    compiled = re.compile(pattern)

    def predicate(value: Any) -> bool:
        text = _pattern_text(value)
        return text is not None and compiled.match(text) is not None

    return FieldValidator(
        name="pattern",
        predicate=predicate,
        failure_message=message,
        code=code,
    )


def in_range(low: float, high: float, message: str | None = None) -> FieldValidator:
    """Inclusive numeric range. Numeric strings are accepted."""
    return FieldValidator(
        name="range",
        predicate=lambda v: low <= _numeric(v) <= high,
        failure_message=message or f"must be between {low} and {high}",
        code="OUT_OF_RANGE",
    )


def member_of(enum_cls: type[Enum], message: str | None = None) -> FieldValidator:
    """Value must name a member of `enum_cls`."""
    names = ", ".join(enum_cls.__members__)
    return FieldValidator(
        name="choice",
        predicate=lambda v: coerce_enum(enum_cls, v) is not None,
        failure_message=message or f"must be one of: {names}",
        code="INVALID_OPTION",
    )


def iso_date(message: str = "must be a valid date (YYYY-MM-DD)") -> FieldValidator:
    def check(value: Any) -> bool:
        if isinstance(value, date):
            return True
        return (
            isinstance(value, str)
            and ISO_DATE_PATTERN.match(value.strip()) is not None
            and parse_date(value) is not None
        )

    return FieldValidator(
        name="date",
        predicate=check,
        failure_message=message,
        code="INVALID_DATE",
    )


def not_in_future(message: str = "cannot be in the future") -> FieldValidator:
    """Date must be on or before today. Unparseable dates are left to iso_date."""

    def check(value: Any, today: date) -> bool:
        parsed = parse_date(value)
        return parsed is None or parsed <= today

    return FieldValidator(
        name="notInFuture",
        predicate=check,
        failure_message=message,
        code="FUTURE_DATE",
        needs_today=True,
    )


def max_length(limit: int) -> FieldValidator:
    return FieldValidator(
        name="maxLength",
        predicate=lambda v: isinstance(v, str) and len(v.strip()) <= limit,
        failure_message=f"must be a text value of at most {limit} characters",
        code="MAX_LENGTH",
    )


def kind_choice(kinds: Mapping[str, type[Enum]], message: str | None = None) -> FieldValidator:
    """A tagged choice: {"kind": <kind>, "value": <member name>}.

    The kind selects which enum the value must belong to.
    """

    def check(value: Any) -> bool:
        if not isinstance(value, Mapping):
            return False
        enum_cls = kinds.get(str(value.get("kind", "")).strip().lower())
        if enum_cls is None:
            return False
        return coerce_enum(enum_cls, value.get("value")) is not None

    return FieldValidator(
        name="kindChoice",
        predicate=check,
        failure_message=message or f"must be a choice of kind {' or '.join(kinds)}",
        code="INVALID_OPTION",
    )


# =============================================================================
# Field Spec
# =============================================================================


@dataclass(frozen=True)
class FieldSpec:
    """Declares one field of an entity: label, presence and format checks."""

    name: str
    label: str
    required: bool = False
    validators: tuple[FieldValidator, ...] = ()

    def check(self, record: Mapping[str, Any], today: date | None = None) -> list[ValidationIssue]:
        value = record.get(self.name)

        if is_blank(value):
            if self.required:
                return [ValidationIssue(
                    message=f"{self.label} is required",
                    code="REQUIRED",
                    field=self.name,
                    severity=Severity.ERROR,
                )]
            return []

        issues: list[ValidationIssue] = []
        for validator in self.validators:
            if not validator.validate(value, today):
                issues.append(ValidationIssue(
                    message=f"{self.label} {validator.message()}",
                    code=validator.code,
                    field=self.name,
                    severity=Severity.ERROR,
                ))
                # Later validators assume the earlier format checks passed
                break
        return issues
