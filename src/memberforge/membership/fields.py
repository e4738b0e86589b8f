"""Field specs for membership categories."""

from memberforge.membership.constants import MAX_MEMBERSHIP_YEAR, MIN_MEMBERSHIP_YEAR
from memberforge.membership.enums import (
    AccessModifier,
    AccountEligibility,
    AffiliateEligibility,
    Category,
    ParentalLeaveExpected,
    Privilege,
    Status,
    UserGroup,
)
from memberforge.validation import (
    FieldSpec,
    in_range,
    iso_date,
    kind_choice,
    matches,
    max_length,
    member_of,
    not_in_future,
)

USER_ID_MAX_LENGTH = 100

# Parentheses would break the stored binding string, e.g. /accounts(<id>)
USER_ID_VALIDATORS = (
    max_length(USER_ID_MAX_LENGTH),
    matches(r"^[^()]+$", "must not contain parentheses", code="INVALID_REFERENCE"),
)

MEMBERSHIP_CATEGORY_FIELDS = (
    FieldSpec("accountId", "Account", validators=USER_ID_VALIDATORS),
    FieldSpec("affiliateId", "Affiliate", validators=USER_ID_VALIDATORS),
    FieldSpec(
        "membershipYear",
        "Membership year",
        required=True,
        validators=(
            matches(r"^\d{4}$", "must be a 4-digit year"),
            in_range(MIN_MEMBERSHIP_YEAR, MAX_MEMBERSHIP_YEAR,
                     f"must be between {MIN_MEMBERSHIP_YEAR} and {MAX_MEMBERSHIP_YEAR}"),
        ),
    ),
    FieldSpec("category", "Category", validators=(member_of(Category),)),
    FieldSpec(
        "eligibility",
        "Eligibility",
        validators=(
            kind_choice(
                {"account": AccountEligibility, "affiliate": AffiliateEligibility},
                'must be {"kind": "account"|"affiliate", "value": <option>} with a valid option',
            ),
        ),
    ),
    FieldSpec("usersGroup", "Users group", validators=(member_of(UserGroup),)),
    FieldSpec(
        "parentalLeaveFrom",
        "Parental leave start date",
        validators=(iso_date(), not_in_future()),
    ),
    FieldSpec("parentalLeaveTo", "Parental leave end date", validators=(iso_date(),)),
    FieldSpec(
        "parentalLeaveExpected",
        "Parental leave expected",
        validators=(member_of(ParentalLeaveExpected),),
    ),
    FieldSpec("retirementStart", "Retirement start date", validators=(iso_date(),)),
    FieldSpec("privilege", "Privilege", validators=(member_of(Privilege),)),
    FieldSpec("accessModifier", "Access modifier", validators=(member_of(AccessModifier),)),
    FieldSpec("status", "Status", validators=(member_of(Status),)),
)
