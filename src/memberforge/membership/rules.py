"""Cross-field business rules for membership categories.

Rules read the prepared record (enum names, ISO date strings). The
parental-leave-expected rule also reads `usedParentalLeaveOptions` from
the context lookups, loaded by the service before validation.
"""

from memberforge.membership.constants import (
    AFFILIATE_CATEGORIES,
    MAX_PARENTAL_LEAVE_DAYS,
    MESSAGES,
    PRACTITIONER_USER_GROUPS,
    RETIREMENT_CATEGORIES,
)
from memberforge.membership.enums import (
    AccountEligibility,
    Category,
    ParentalLeaveExpected,
    UserGroup,
)
from memberforge.validation import (
    Operation,
    ValidationContext,
    ValidationIssue,
    date_range,
    exactly_one_of,
    kind_matches_reference,
    not_after_today,
    requires_companion,
    rule,
)
from memberforge.validation.values import coerce_enum, is_blank

USED_PARENTAL_LEAVE_OPTIONS = "usedParentalLeaveOptions"

PARENTAL_LEAVE_OPTION_LABELS = {
    ParentalLeaveExpected.FULL_YEAR: "Full Year (12 months)",
    ParentalLeaveExpected.SIX_MONTHS: "Six Months",
}


def _account_eligibility(ctx: ValidationContext) -> AccountEligibility | None:
    choice = ctx.value("eligibility")
    if not isinstance(choice, dict) or str(choice.get("kind", "")).lower() != "account":
        return None
    return coerce_enum(AccountEligibility, choice.get("value"))


user_reference = exactly_one_of(
    "user-reference",
    "accountId",
    "affiliateId",
    neither_message=MESSAGES["NO_USER_REFERENCE"],
    both_message=MESSAGES["MULTIPLE_USER_REFERENCES"],
    description="Exactly one of accountId or affiliateId must be set",
)

retirement_date = requires_companion(
    "retirement-date",
    "category",
    [c.name for c in RETIREMENT_CATEGORIES],
    "retirementStart",
    message=MESSAGES["RETIREMENT_DATE_REQUIRED"],
    stray_message=MESSAGES["RETIREMENT_DATE_UNEXPECTED"],
    description="Retired categories require retirementStart; other categories should not set it",
)

retirement_in_future = not_after_today(
    "retirement-in-future",
    "retirementStart",
    message=MESSAGES["RETIREMENT_DATE_IN_FUTURE"],
    only_if=("category", [c.name for c in RETIREMENT_CATEGORIES]),
    description="On retired categories, retirementStart should not lie in the future",
)

parental_leave_period = date_range(
    "parental-leave-period",
    "parentalLeaveFrom",
    "parentalLeaveTo",
    order_message=MESSAGES["INVALID_PARENTAL_LEAVE_PERIOD"],
    max_days=MAX_PARENTAL_LEAVE_DAYS,
    span_message=MESSAGES["PARENTAL_LEAVE_TOO_LONG"],
    description=(
        f"Parental leave must end after it starts and last at most {MAX_PARENTAL_LEAVE_DAYS} days"
    ),
)

eligibility_user_type = kind_matches_reference(
    "eligibility-user-type",
    "eligibility",
    {"account": "accountId", "affiliate": "affiliateId"},
    message=MESSAGES["ELIGIBILITY_MISMATCH"],
    description="Eligibility kind must match the user reference that is set",
)


@rule(
    "category-user-type",
    fields=["category", "accountId", "affiliateId"],
    requires=["category"],
    description="Affiliate categories are only for affiliates, and only affiliate categories",
)
def category_user_type(ctx: ValidationContext) -> list[ValidationIssue]:
    category = coerce_enum(Category, ctx.value("category"))
    has_account = not is_blank(ctx.value("accountId"))
    has_affiliate = not is_blank(ctx.value("affiliateId"))
    if category is None or has_account == has_affiliate:
        return []

    is_affiliate_category = category in AFFILIATE_CATEGORIES
    if has_affiliate != is_affiliate_category:
        return [ValidationIssue(
            message=MESSAGES["CATEGORY_USER_TYPE_MISMATCH"],
            code="CATEGORY_USER_TYPE_MISMATCH",
            field="category",
        )]
    return []


@rule(
    "eligibility-dates",
    fields=["eligibility", "parentalLeaveFrom", "parentalLeaveTo", "retirementStart"],
    requires=["eligibility"],
    description="Parental leave eligibility needs both leave dates; retired eligibility needs retirementStart",
)
def eligibility_dates(ctx: ValidationContext) -> list[ValidationIssue]:
    eligibility = _account_eligibility(ctx)
    issues = []
    if eligibility == AccountEligibility.Q6 and (
        is_blank(ctx.value("parentalLeaveFrom")) or is_blank(ctx.value("parentalLeaveTo"))
    ):
        issues.append(ValidationIssue(
            message=MESSAGES["PARENTAL_LEAVE_DATES_REQUIRED"],
            code="COMPANION_REQUIRED",
            field="parentalLeaveFrom",
        ))
    if eligibility == AccountEligibility.Q5 and is_blank(ctx.value("retirementStart")):
        issues.append(ValidationIssue(
            message=MESSAGES["RETIREMENT_REQUIRED_FOR_ELIGIBILITY"],
            code="COMPANION_REQUIRED",
            field="retirementStart",
        ))
    return issues


@rule(
    "parental-leave-expected",
    fields=[
        "parentalLeaveExpected",
        "accountId",
        "affiliateId",
        "usersGroup",
        "eligibility",
        "parentalLeaveFrom",
        "parentalLeaveTo",
    ],
    requires=["parentalLeaveExpected"],
    on=[Operation.CREATE],
    description="Parental leave insurance: accounts in OT/OTA groups on parental leave, each option once",
)
def parental_leave_expected(ctx: ValidationContext) -> list[ValidationIssue]:
    """Checks stop at the first failure."""

    def issue(message: str) -> list[ValidationIssue]:
        return [ValidationIssue(
            message=message,
            code="PARENTAL_LEAVE_EXPECTED",
            field="parentalLeaveExpected",
        )]

    if not is_blank(ctx.value("affiliateId")):
        return issue(MESSAGES["PARENTAL_LEAVE_EXPECTED_AFFILIATE"])
    if coerce_enum(UserGroup, ctx.value("usersGroup")) not in PRACTITIONER_USER_GROUPS:
        return issue(MESSAGES["PARENTAL_LEAVE_EXPECTED_USER_GROUP"])
    if _account_eligibility(ctx) != AccountEligibility.Q6:
        return issue(MESSAGES["PARENTAL_LEAVE_EXPECTED_ELIGIBILITY"])
    if is_blank(ctx.value("parentalLeaveFrom")) or is_blank(ctx.value("parentalLeaveTo")):
        return issue(MESSAGES["PARENTAL_LEAVE_EXPECTED_DATES"])

    option = coerce_enum(ParentalLeaveExpected, ctx.value("parentalLeaveExpected"))
    used = ctx.lookups.get(USED_PARENTAL_LEAVE_OPTIONS, frozenset())
    if option is not None and option in used:
        label = PARENTAL_LEAVE_OPTION_LABELS[option]
        return issue(MESSAGES["PARENTAL_LEAVE_EXPECTED_USED"].format(option=label))
    return []


MEMBERSHIP_CATEGORY_RULES = (
    user_reference,
    retirement_date,
    retirement_in_future,
    parental_leave_period,
    eligibility_user_type,
    category_user_type,
    eligibility_dates,
    parental_leave_expected,
)
