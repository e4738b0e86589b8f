"""Storage mapping for membership categories.

Option sets are stored as integer codes, user references as binding
strings into the accounts and affiliates collections.
"""

from typing import Any

from memberforge.mapping import (
    BindCodec,
    ChoiceCodec,
    DateCodec,
    DateTimeCodec,
    EntityMapper,
    FieldMapping,
    TextCodec,
)
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
from memberforge.membership.models import (
    AccountReference,
    AffiliateReference,
    MembershipCategory,
)


def flatten(entity: MembershipCategory) -> dict[str, Any]:
    is_account = isinstance(entity.user, AccountReference)
    return {
        "id": entity.id,
        "categoryId": entity.business_id,
        "tenantId": entity.tenant_id,
        "accountId": entity.user.id if is_account else None,
        "affiliateId": None if is_account else entity.user.id,
        "membershipYear": entity.membership_year,
        "category": entity.category,
        "accountEligibility": (
            entity.eligibility if isinstance(entity.eligibility, AccountEligibility) else None
        ),
        "affiliateEligibility": (
            entity.eligibility if isinstance(entity.eligibility, AffiliateEligibility) else None
        ),
        "usersGroup": entity.users_group,
        "parentalLeaveFrom": entity.parental_leave_from,
        "parentalLeaveTo": entity.parental_leave_to,
        "parentalLeaveExpected": entity.parental_leave_expected,
        "retirementStart": entity.retirement_start,
        "privilege": entity.privilege,
        "accessModifier": entity.access_modifier,
        "status": entity.status,
        "createdAt": entity.created_at,
        "updatedAt": entity.updated_at,
    }


def assemble(flat: dict[str, Any]) -> MembershipCategory | None:
    """Build an entity from decoded values.

    Rows with no user reference, two user references or no membership
    year cannot form an entity.
    """
    account_id = flat.get("accountId")
    affiliate_id = flat.get("affiliateId")
    if bool(account_id) == bool(affiliate_id) or not flat.get("membershipYear"):
        return None

    if account_id:
        user = AccountReference(account_id)
        eligibility = flat.get("accountEligibility")
    else:
        user = AffiliateReference(affiliate_id)
        eligibility = flat.get("affiliateEligibility")

    return MembershipCategory(
        user=user,
        membership_year=flat["membershipYear"],
        category=flat.get("category"),
        eligibility=eligibility,
        users_group=flat.get("usersGroup"),
        parental_leave_from=flat.get("parentalLeaveFrom"),
        parental_leave_to=flat.get("parentalLeaveTo"),
        parental_leave_expected=flat.get("parentalLeaveExpected"),
        retirement_start=flat.get("retirementStart"),
        privilege=flat.get("privilege"),
        access_modifier=flat.get("accessModifier"),
        status=flat.get("status") or Status.ACTIVE,
        id=flat.get("id"),
        business_id=flat.get("categoryId"),
        tenant_id=flat.get("tenantId"),
        created_at=flat.get("createdAt"),
        updated_at=flat.get("updatedAt"),
    )


MEMBERSHIP_CATEGORY_MAPPER: EntityMapper[MembershipCategory] = EntityMapper(
    [
        FieldMapping("id", "id", TextCodec()),
        FieldMapping("categoryId", "business_id", TextCodec()),
        FieldMapping("tenantId", "tenant_id", TextCodec()),
        FieldMapping("accountId", "account_ref", BindCodec("accounts")),
        FieldMapping("affiliateId", "affiliate_ref", BindCodec("affiliates")),
        FieldMapping("membershipYear", "membership_year", TextCodec()),
        FieldMapping("category", "category_code", ChoiceCodec(Category)),
        FieldMapping("accountEligibility", "eligibility_code", ChoiceCodec(AccountEligibility)),
        FieldMapping(
            "affiliateEligibility",
            "affiliate_eligibility_code",
            ChoiceCodec(AffiliateEligibility),
        ),
        FieldMapping("usersGroup", "users_group_code", ChoiceCodec(UserGroup)),
        FieldMapping("parentalLeaveFrom", "parental_leave_from", DateCodec()),
        FieldMapping("parentalLeaveTo", "parental_leave_to", DateCodec()),
        FieldMapping(
            "parentalLeaveExpected",
            "parental_leave_expected_code",
            ChoiceCodec(ParentalLeaveExpected),
        ),
        FieldMapping("retirementStart", "retirement_start", DateCodec()),
        FieldMapping("privilege", "privilege_code", ChoiceCodec(Privilege)),
        FieldMapping("accessModifier", "access_modifier_code", ChoiceCodec(AccessModifier)),
        FieldMapping("status", "status_code", ChoiceCodec(Status)),
        FieldMapping("createdAt", "created_at", DateTimeCodec()),
        FieldMapping("updatedAt", "updated_at", DateTimeCodec()),
    ],
    flatten=flatten,
    assemble=assemble,
)
