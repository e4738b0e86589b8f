"""The validated membership category entity and its record conversions.

A MembershipCategory is only ever built from a record that passed
validation. Records are camelCase dicts with enum names and ISO dates;
entities hold enum members and date objects.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, ClassVar

from memberforge.membership.constants import RETIREMENT_CATEGORIES
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
from memberforge.validation.values import coerce_enum, is_blank, parse_date, parse_datetime


@dataclass(frozen=True)
class AccountReference:
    """An individual member."""

    id: str
    kind: ClassVar[str] = "account"


@dataclass(frozen=True)
class AffiliateReference:
    """An organisational member."""

    id: str
    kind: ClassVar[str] = "affiliate"


UserReference = AccountReference | AffiliateReference
Eligibility = AccountEligibility | AffiliateEligibility


@dataclass(frozen=True)
class MembershipCategory:
    user: UserReference
    membership_year: str
    category: Category | None = None
    eligibility: Eligibility | None = None
    users_group: UserGroup | None = None
    parental_leave_from: date | None = None
    parental_leave_to: date | None = None
    parental_leave_expected: ParentalLeaveExpected | None = None
    retirement_start: date | None = None
    privilege: Privilege | None = None
    access_modifier: AccessModifier | None = None
    status: Status = Status.ACTIVE
    id: str | None = None
    business_id: str | None = None
    tenant_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == Status.ACTIVE


# =============================================================================
# Record <-> entity
# =============================================================================


def _text(value: Any) -> str | None:
    if is_blank(value):
        return None
    return str(value).strip()


def _eligibility(value: Any) -> Eligibility | None:
    if not isinstance(value, dict):
        return None
    kind = str(value.get("kind", "")).strip().lower()
    if kind == AccountReference.kind:
        return coerce_enum(AccountEligibility, value.get("value"))
    if kind == AffiliateReference.kind:
        return coerce_enum(AffiliateEligibility, value.get("value"))
    return None


def build_membership_category(record: dict[str, Any]) -> MembershipCategory:
    """Build the entity from a validated record.

    Raises:
        ValueError: The record has no user reference (validation was skipped)
    """
    account_id = _text(record.get("accountId"))
    affiliate_id = _text(record.get("affiliateId"))
    if account_id:
        user: UserReference = AccountReference(account_id)
    elif affiliate_id:
        user = AffiliateReference(affiliate_id)
    else:
        raise ValueError("membership category needs a user reference")

    return MembershipCategory(
        user=user,
        membership_year=_text(record.get("membershipYear")) or "",
        category=coerce_enum(Category, record.get("category")),
        eligibility=_eligibility(record.get("eligibility")),
        users_group=coerce_enum(UserGroup, record.get("usersGroup")),
        parental_leave_from=parse_date(record.get("parentalLeaveFrom")),
        parental_leave_to=parse_date(record.get("parentalLeaveTo")),
        parental_leave_expected=coerce_enum(
            ParentalLeaveExpected, record.get("parentalLeaveExpected")
        ),
        retirement_start=parse_date(record.get("retirementStart")),
        privilege=coerce_enum(Privilege, record.get("privilege")),
        access_modifier=coerce_enum(AccessModifier, record.get("accessModifier")),
        status=coerce_enum(Status, record.get("status")) or Status.ACTIVE,
        id=_text(record.get("id")),
        business_id=_text(record.get("categoryId")),
        tenant_id=_text(record.get("tenantId")),
        created_at=parse_datetime(record.get("createdAt")),
        updated_at=parse_datetime(record.get("updatedAt")),
    )


def _name(member: Any) -> str | None:
    return member.name if member is not None else None


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def membership_category_to_record(entity: MembershipCategory) -> dict[str, Any]:
    eligibility = None
    if entity.eligibility is not None:
        kind = (
            AccountReference.kind
            if isinstance(entity.eligibility, AccountEligibility)
            else AffiliateReference.kind
        )
        eligibility = {"kind": kind, "value": entity.eligibility.name}

    return {
        "id": entity.id,
        "categoryId": entity.business_id,
        "tenantId": entity.tenant_id,
        "accountId": entity.user.id if isinstance(entity.user, AccountReference) else None,
        "affiliateId": entity.user.id if isinstance(entity.user, AffiliateReference) else None,
        "membershipYear": entity.membership_year,
        "category": _name(entity.category),
        "eligibility": eligibility,
        "usersGroup": _name(entity.users_group),
        "parentalLeaveFrom": _iso(entity.parental_leave_from),
        "parentalLeaveTo": _iso(entity.parental_leave_to),
        "parentalLeaveExpected": _name(entity.parental_leave_expected),
        "retirementStart": _iso(entity.retirement_start),
        "privilege": _name(entity.privilege),
        "accessModifier": _name(entity.access_modifier),
        "status": entity.status.name,
        "createdAt": _iso(entity.created_at),
        "updatedAt": _iso(entity.updated_at),
    }


def derive_display_fields(entity: MembershipCategory, today: date) -> dict[str, Any]:
    """Computed fields for responses; never stored."""
    has_leave = entity.parental_leave_from is not None and entity.parental_leave_to is not None
    return {
        "userType": entity.user.kind,
        "isActive": entity.is_active,
        "isRetired": entity.category in RETIREMENT_CATEGORIES,
        "hasParentalLeave": has_leave,
        "onParentalLeave": (
            has_leave and entity.parental_leave_from <= today <= entity.parental_leave_to
        ),
    }
