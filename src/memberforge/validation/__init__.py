"""memberforge validation system.

Two layers, both reporting issues rather than raising:
- Field level: FieldSpec with FieldValidators (presence, format, range, choice)
- Cross-field: Rules built from generic factories or the @rule decorator

Usage:
    from memberforge.validation import EntityLifecycle, Operation

    lifecycle = EntityLifecycle()
    result = lifecycle.prepare(candidate, Operation.CREATE, "MembershipCategory",
                               field_specs, rules, defaults)
    if not result.validation.ok:
        ...
"""

from memberforge.validation.fields import (
    FieldSpec,
    FieldValidator,
    in_range,
    iso_date,
    kind_choice,
    matches,
    max_length,
    member_of,
    not_in_future,
)
from memberforge.validation.rules import (
    Rule,
    date_range,
    exactly_one_of,
    kind_matches_reference,
    not_after_today,
    requires_companion,
    rule,
)
from memberforge.validation.services import (
    DefaultDefinition,
    DefaultingService,
    DefaultPolicy,
    EntityLifecycle,
    LifecycleResult,
    ValidationService,
)
from memberforge.validation.types import (
    Operation,
    Severity,
    ValidationContext,
    ValidationIssue,
    ValidationResult,
)

__all__ = [
    # Types
    "Operation",
    "Severity",
    "ValidationContext",
    "ValidationIssue",
    "ValidationResult",
    # Field level
    "FieldSpec",
    "FieldValidator",
    "in_range",
    "iso_date",
    "kind_choice",
    "matches",
    "max_length",
    "member_of",
    "not_in_future",
    # Rules
    "Rule",
    "date_range",
    "exactly_one_of",
    "kind_matches_reference",
    "not_after_today",
    "requires_companion",
    "rule",
    # Services
    "DefaultDefinition",
    "DefaultingService",
    "DefaultPolicy",
    "EntityLifecycle",
    "LifecycleResult",
    "ValidationService",
]
