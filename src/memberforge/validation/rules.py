"""Cross-field rules.

A Rule looks at several fields of one record and reports issues. Rules are
plain data: a name, the fields they read, the fields that must be present
before the rule means anything, and the operations they run on.

Generic rule factories cover the common shapes:
- exactly_one_of: two mutually exclusive references, one required
- requires_companion: a value in one field requires another field
- date_range: ordered start/end dates with a maximum span
- not_after_today: a date that should not lie in the future
- kind_matches_reference: a tagged choice agrees with the reference that is set

Domain rules with bespoke logic use the @rule decorator.
"""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from memberforge.validation.types import (
    Operation,
    Severity,
    ValidationContext,
    ValidationIssue,
)
from memberforge.validation.values import choice_name, is_blank, parse_date


RuleCheck = Callable[[ValidationContext], list[ValidationIssue]]

ALL_OPERATIONS = (Operation.CREATE, Operation.UPDATE)


@dataclass(frozen=True)
class Rule:
    """A cross-field business rule.

    Attributes:
        name: Unique rule name, used in issue reports and `rules` listings
        check: Function producing issues for a context
        fields: Every field the rule reads. On update the rule only runs
            when the payload touches one of them.
        requires: Fields that must all be non-blank for the rule to run.
            A rule whose prerequisites are missing is vacuously satisfied.
        on: Operations the rule applies to
        description: One-line explanation for listings
    """

    name: str
    check: RuleCheck
    fields: frozenset[str]
    requires: tuple[str, ...] = ()
    on: tuple[Operation, ...] = ALL_OPERATIONS
    description: str = ""

    def applies_to(self, ctx: ValidationContext) -> bool:
        if ctx.operation not in self.on:
            return False
        if ctx.operation == Operation.UPDATE and ctx.changed_fields is not None:
            return not self.fields.isdisjoint(ctx.changed_fields)
        return True

    def evaluate(self, ctx: ValidationContext) -> list[ValidationIssue]:
        if any(is_blank(ctx.record.get(f)) for f in self.requires):
            return []
        issues = self.check(ctx)
        return [
            issue if issue.rule else _with_rule(issue, self.name)
            for issue in issues
        ]

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "fields": sorted(self.fields),
            "requires": list(self.requires),
            "on": [op.value for op in self.on],
        }


def _with_rule(issue: ValidationIssue, rule_name: str) -> ValidationIssue:
    return ValidationIssue(
        message=issue.message,
        code=issue.code,
        field=issue.field,
        severity=issue.severity,
        rule=rule_name,
    )


def rule(
    name: str,
    *,
    fields: Iterable[str],
    requires: Iterable[str] = (),
    on: Iterable[Operation] = ALL_OPERATIONS,
    description: str = "",
) -> Callable[[RuleCheck], Rule]:
    """Decorator turning a check function into a Rule.

    Usage:
        @rule("leave-dates", fields=["leaveFrom", "leaveTo"], requires=["leaveFrom"])
        def leave_dates(ctx: ValidationContext) -> list[ValidationIssue]:
            ...
    """
    requires = tuple(requires)

    def decorator(fn: RuleCheck) -> Rule:
        return Rule(
            name=name,
            check=fn,
            fields=frozenset(fields) | frozenset(requires),
            requires=requires,
            on=tuple(on),
            description=description or (fn.__doc__ or "").strip().split("\n")[0],
        )

    return decorator


# =============================================================================
# Rule Factories
# =============================================================================


def exactly_one_of(
    name: str,
    first: str,
    second: str,
    *,
    neither_message: str,
    both_message: str,
    description: str = "",
) -> Rule:
    """Exactly one of two fields must be set."""

    def check(ctx: ValidationContext) -> list[ValidationIssue]:
        has_first = not is_blank(ctx.value(first))
        has_second = not is_blank(ctx.value(second))
        if has_first and has_second:
            return [ValidationIssue(message=both_message, code="REFERENCE_CONFLICT")]
        if not has_first and not has_second:
            return [ValidationIssue(message=neither_message, code="REFERENCE_REQUIRED")]
        return []

    return Rule(
        name=name,
        check=check,
        fields=frozenset({first, second}),
        description=description or f"Exactly one of {first} or {second} must be set",
    )


def requires_companion(
    name: str,
    field: str,
    values: Iterable[str],
    companion: str,
    *,
    message: str,
    stray_message: str | None = None,
    description: str = "",
) -> Rule:
    """When `field` holds one of `values`, `companion` must be set.

    With `stray_message`, a companion set while `field` holds another value
    is reported as a warning.
    """
    triggers = frozenset(v.upper() for v in values)

    def check(ctx: ValidationContext) -> list[ValidationIssue]:
        triggered = choice_name(ctx.value(field)) in triggers
        has_companion = not is_blank(ctx.value(companion))
        if triggered and not has_companion:
            return [ValidationIssue(
                message=message,
                code="COMPANION_REQUIRED",
                field=companion,
            )]
        if stray_message and has_companion and not triggered:
            return [ValidationIssue(
                message=stray_message,
                code="COMPANION_UNEXPECTED",
                field=companion,
                severity=Severity.WARNING,
            )]
        return []

    return Rule(
        name=name,
        check=check,
        fields=frozenset({field, companion}),
        requires=(field,),
        description=description or f"{companion} is required when {field} is one of {sorted(triggers)}",
    )


def date_range(
    name: str,
    start: str,
    end: str,
    *,
    order_message: str,
    max_days: int | None = None,
    span_message: str | None = None,
    description: str = "",
) -> Rule:
    """`end` must be strictly after `start`, optionally within `max_days`.

    Unparseable dates are skipped; the field validators report them.
    """

    def check(ctx: ValidationContext) -> list[ValidationIssue]:
        start_date = parse_date(ctx.value(start))
        end_date = parse_date(ctx.value(end))
        if start_date is None or end_date is None:
            return []
        if end_date <= start_date:
            return [ValidationIssue(
                message=order_message,
                code="INVALID_DATE_RANGE",
                field=end,
            )]
        if max_days is not None and (end_date - start_date).days > max_days:
            return [ValidationIssue(
                message=span_message or f"Period exceeds {max_days} days",
                code="DATE_RANGE_TOO_LONG",
                field=end,
            )]
        return []

    return Rule(
        name=name,
        check=check,
        fields=frozenset({start, end}),
        requires=(start, end),
        description=description or f"{end} must be after {start}",
    )


def not_after_today(
    name: str,
    field: str,
    *,
    message: str,
    severity: Severity = Severity.WARNING,
    only_if: tuple[str, Iterable[str]] | None = None,
    description: str = "",
) -> Rule:
    """Warn when the date in `field` lies after today.

    With `only_if=(choice_field, values)` the rule runs only while
    `choice_field` holds one of `values`.
    """
    gate_field = None
    gate_values: frozenset[str] = frozenset()
    if only_if is not None:
        gate_field = only_if[0]
        gate_values = frozenset(v.upper() for v in only_if[1])

    def check(ctx: ValidationContext) -> list[ValidationIssue]:
        if gate_field is not None and choice_name(ctx.value(gate_field)) not in gate_values:
            return []
        value = parse_date(ctx.value(field))
        if value is not None and value > ctx.today:
            return [ValidationIssue(
                message=message,
                code="FUTURE_DATE",
                field=field,
                severity=severity,
            )]
        return []

    requires = (field,) if gate_field is None else (field, gate_field)
    return Rule(
        name=name,
        check=check,
        fields=frozenset(requires),
        requires=requires,
        description=description or f"{field} should not be in the future",
    )


def kind_matches_reference(
    name: str,
    choice_field: str,
    references: Mapping[str, str],
    *,
    message: str,
    description: str = "",
) -> Rule:
    """A tagged choice's kind must match the single reference that is set.

    `references` maps each kind to the reference field that implies it.
    When zero or several references are set the rule stays silent; the
    reference-presence rule reports that case.
    """

    def check(ctx: ValidationContext) -> list[ValidationIssue]:
        present = [kind for kind, ref in references.items() if not is_blank(ctx.value(ref))]
        if len(present) != 1:
            return []
        choice = ctx.value(choice_field)
        if not isinstance(choice, Mapping):
            return []
        kind = str(choice.get("kind", "")).strip().lower()
        if kind != present[0]:
            return [ValidationIssue(
                message=message,
                code="KIND_MISMATCH",
                field=choice_field,
            )]
        return []

    return Rule(
        name=name,
        check=check,
        fields=frozenset({choice_field, *references.values()}),
        requires=(choice_field,),
        description=description or f"{choice_field} kind must match the reference that is set",
    )
