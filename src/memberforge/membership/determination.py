"""Category determination from users group and eligibility.

Used as a create-time default: when a candidate carries no category, the
category is derived from what the member declared.
"""

from datetime import date
from typing import Any, Mapping

from memberforge.membership.enums import (
    AccountEligibility,
    AffiliateEligibility,
    Category,
    UserGroup,
)
from memberforge.validation.values import coerce_enum

OT_CATEGORIES = {
    AccountEligibility.NONE: Category.ASSOC,
    AccountEligibility.Q1: Category.OT_PR,
    AccountEligibility.Q2: Category.OT_NP,
    AccountEligibility.Q5: Category.OT_RET,
    AccountEligibility.Q6: Category.OT_NP,
    AccountEligibility.Q7: Category.OT_LIFE,
}

OTA_CATEGORIES = {
    AccountEligibility.NONE: Category.ASSOC,
    AccountEligibility.Q3: Category.OTA_PR,
    AccountEligibility.Q4: Category.OTA_NP,
    AccountEligibility.Q5: Category.OTA_RET,
    AccountEligibility.Q6: Category.OTA_NP,
    AccountEligibility.Q7: Category.OTA_LIFE,
}

AFFILIATE_ELIGIBILITY_CATEGORIES = {
    AffiliateEligibility.PRIMARY: Category.AFF_PRIM,
    AffiliateEligibility.PREMIUM: Category.AFF_PREM,
}


def determine_category(
    users_group: UserGroup | None,
    eligibility: AccountEligibility | AffiliateEligibility | None,
) -> Category | None:
    """Map a users group and eligibility answer to a category.

    Returns None for combinations with no defined category (for example
    an OT declaring an OTA-only eligibility).
    """
    if isinstance(eligibility, AffiliateEligibility):
        return AFFILIATE_ELIGIBILITY_CATEGORIES.get(eligibility)
    if users_group == UserGroup.OT:
        return OT_CATEGORIES.get(eligibility) if eligibility is not None else None
    if users_group == UserGroup.OTA:
        return OTA_CATEGORIES.get(eligibility) if eligibility is not None else None
    if users_group is not None and users_group != UserGroup.AFFILIATE:
        return Category.ASSOC
    return None


def default_category(record: Mapping[str, Any], today: date) -> str | None:
    """Computed default for the `category` field."""
    choice = record.get("eligibility")
    eligibility = None
    if isinstance(choice, Mapping):
        kind = str(choice.get("kind", "")).lower()
        if kind == "account":
            eligibility = coerce_enum(AccountEligibility, choice.get("value"))
        elif kind == "affiliate":
            eligibility = coerce_enum(AffiliateEligibility, choice.get("value"))

    category = determine_category(coerce_enum(UserGroup, record.get("usersGroup")), eligibility)
    return category.name if category is not None else None
