"""Business constants for membership categories."""

from types import MappingProxyType

from memberforge.membership.enums import Category, UserGroup

ENTITY_NAME = "MembershipCategory"
CACHE_PREFIX = "membership-category"
TABLE_NAME = "membership_category"

BUSINESS_ID_PREFIX = "mbc"
BUSINESS_ID_DIGITS = 7

MIN_MEMBERSHIP_YEAR = 2019
MAX_MEMBERSHIP_YEAR = 2050

MAX_PARENTAL_LEAVE_DAYS = 365 * 2

RETIREMENT_CATEGORIES = frozenset({Category.OT_RET, Category.OTA_RET})
AFFILIATE_CATEGORIES = frozenset({Category.AFF_PRIM, Category.AFF_PREM})
PRACTITIONER_USER_GROUPS = frozenset({UserGroup.OT, UserGroup.OTA})

MESSAGES = MappingProxyType({
    "NO_USER_REFERENCE": "Must specify either an Account or an Affiliate user reference",
    "MULTIPLE_USER_REFERENCES": "Cannot specify both Account and Affiliate user references",
    "RETIREMENT_DATE_REQUIRED": "Retirement start date is required for retired categories",
    "RETIREMENT_DATE_UNEXPECTED": "Retirement start date is only meaningful for retired categories",
    "RETIREMENT_DATE_IN_FUTURE": "Retirement start date is in the future",
    "INVALID_PARENTAL_LEAVE_PERIOD": "Parental leave end date must be after start date",
    "PARENTAL_LEAVE_TOO_LONG": (
        f"Parental leave period exceeds the maximum leave period of {MAX_PARENTAL_LEAVE_DAYS} days"
    ),
    "ELIGIBILITY_MISMATCH": "Eligibility type does not match user type (Account vs Affiliate)",
    "CATEGORY_USER_TYPE_MISMATCH": "Category does not match user type (OT/OTA vs Affiliate)",
    "PARENTAL_LEAVE_DATES_REQUIRED": (
        "Parental leave dates (from and to) are required when selecting parental leave eligibility"
    ),
    "RETIREMENT_REQUIRED_FOR_ELIGIBILITY": (
        "Retirement start date is required when selecting retired/resigned eligibility"
    ),
    "PARENTAL_LEAVE_EXPECTED_AFFILIATE": (
        "Parental Leave Expected is not available for Affiliate users"
    ),
    "PARENTAL_LEAVE_EXPECTED_USER_GROUP": (
        "Parental Leave Expected is only available for OT or OTA practitioners"
    ),
    "PARENTAL_LEAVE_EXPECTED_ELIGIBILITY": (
        'Parental Leave Expected requires eligibility "On Parental Leave"'
    ),
    "PARENTAL_LEAVE_EXPECTED_DATES": (
        "Parental Leave Expected requires both parental leave from and to dates"
    ),
    "PARENTAL_LEAVE_EXPECTED_USED": (
        "{option} parental leave has already been used. "
        "Each parental leave option can only be used once"
    ),
    "DUPLICATE": "A membership category already exists for this user and membership year",
})
