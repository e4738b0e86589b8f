"""Membership categories: one member's category for one membership year.

    from memberforge.membership import build_membership_service

    service = build_membership_service(repository)
    saved = await service.create({"accountId": "acct-1", ...}, actor)
"""

from memberforge.membership.definition import (
    MEMBERSHIP_CATEGORY,
    MEMBERSHIP_CATEGORY_TABLE,
    load_parental_leave_history,
)
from memberforge.membership.determination import default_category, determine_category
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
from memberforge.membership.mapper import MEMBERSHIP_CATEGORY_MAPPER
from memberforge.membership.models import (
    AccountReference,
    AffiliateReference,
    MembershipCategory,
    build_membership_category,
    derive_display_fields,
    membership_category_to_record,
)
from memberforge.membership.rules import MEMBERSHIP_CATEGORY_RULES
from memberforge.membership.service import (
    MembershipCategoryService,
    build_membership_service,
    create_membership_repository,
)

__all__ = [
    "AccessModifier",
    "AccountEligibility",
    "AccountReference",
    "AffiliateEligibility",
    "AffiliateReference",
    "Category",
    "MEMBERSHIP_CATEGORY",
    "MEMBERSHIP_CATEGORY_MAPPER",
    "MEMBERSHIP_CATEGORY_RULES",
    "MEMBERSHIP_CATEGORY_TABLE",
    "MembershipCategory",
    "MembershipCategoryService",
    "ParentalLeaveExpected",
    "Privilege",
    "Status",
    "UserGroup",
    "build_membership_category",
    "build_membership_service",
    "create_membership_repository",
    "default_category",
    "derive_display_fields",
    "determine_category",
    "load_parental_leave_history",
    "membership_category_to_record",
]
