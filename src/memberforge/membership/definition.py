"""The membership category entity definition.

Ties together field specs, rules, defaults, storage table, permissions
and record conversions for the generic EntityService.
"""

import logging
from typing import Any

from memberforge.auth import EntityPermissions, FieldPolicy
from memberforge.entities import EntityDefinition
from memberforge.mapping import EntityMapper
from memberforge.membership.constants import (
    BUSINESS_ID_DIGITS,
    BUSINESS_ID_PREFIX,
    CACHE_PREFIX,
    ENTITY_NAME,
    MESSAGES,
    TABLE_NAME,
)
from memberforge.membership.determination import default_category
from memberforge.membership.enums import AccessModifier, Privilege, Status
from memberforge.membership.fields import MEMBERSHIP_CATEGORY_FIELDS
from memberforge.membership.mapper import MEMBERSHIP_CATEGORY_MAPPER
from memberforge.membership.models import (
    MembershipCategory,
    build_membership_category,
    derive_display_fields,
    membership_category_to_record,
)
from memberforge.membership.rules import (
    MEMBERSHIP_CATEGORY_RULES,
    USED_PARENTAL_LEAVE_OPTIONS,
)
from memberforge.persistence import (
    Condition,
    FilterOp,
    ListQuery,
    Repository,
    TableSpec,
    UniqueIndex,
)
from memberforge.validation import DefaultDefinition
from memberforge.validation.values import is_blank

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 100


# =============================================================================
# Defaults
# =============================================================================

MEMBERSHIP_CATEGORY_DEFAULTS = (
    DefaultDefinition("membershipYear", compute=lambda record, today: str(today.year)),
    DefaultDefinition("category", compute=default_category),
    DefaultDefinition("privilege", value=Privilege.OWNER.name),
    DefaultDefinition("accessModifier", value=AccessModifier.PRIVATE.name),
    DefaultDefinition("status", value=Status.ACTIVE.name),
)


# =============================================================================
# Lookups
# =============================================================================


async def load_parental_leave_history(
    repository: Repository,
    mapper: EntityMapper,
    record: dict[str, Any],
    tenant_id: str,
) -> dict[str, Any]:
    """Parental leave insurance options the account has already used.

    Every stored category of the account counts, active or not. Only
    loaded when the candidate asks for parental leave insurance.
    """
    account_id = record.get("accountId")
    if is_blank(record.get("parentalLeaveExpected")) or is_blank(account_id):
        return {}

    conditions = (
        Condition("tenantId", FilterOp.EQ, tenant_id),
        Condition("accountId", FilterOp.EQ, account_id),
    )
    used = set()
    page = 1
    while True:
        query = ListQuery(conditions, page=page, page_size=HISTORY_PAGE_SIZE, include_inactive=True)
        rows, total = await repository.list(query)
        for row in rows:
            entity = mapper.to_internal(row)
            if entity is not None and entity.parental_leave_expected is not None:
                used.add(entity.parental_leave_expected)
        if not rows or page * HISTORY_PAGE_SIZE >= total:
            break
        page += 1

    logger.debug("Account %s used parental leave options: %s", account_id, sorted(u.name for u in used))
    return {USED_PARENTAL_LEAVE_OPTIONS: frozenset(used)}


# =============================================================================
# Definition
# =============================================================================

MEMBERSHIP_CATEGORY_TABLE = TableSpec(
    name=TABLE_NAME,
    mapper=MEMBERSHIP_CATEGORY_MAPPER,
    id_prefix=BUSINESS_ID_PREFIX,
    id_digits=BUSINESS_ID_DIGITS,
    unique_indexes=(
        UniqueIndex(
            f"ux_{TABLE_NAME}_account_year",
            ("tenant_id", "account_ref", "membership_year"),
            where=f"status_code = {Status.ACTIVE.value} AND account_ref IS NOT NULL",
        ),
        UniqueIndex(
            f"ux_{TABLE_NAME}_affiliate_year",
            ("tenant_id", "affiliate_ref", "membership_year"),
            where=f"status_code = {Status.ACTIVE.value} AND affiliate_ref IS NOT NULL",
        ),
    ),
)

MEMBERSHIP_CATEGORY_PERMISSIONS = EntityPermissions(
    read="owner",
    create="owner",
    update="admin",
    delete="admin",
    field_policies={
        "privilege": FieldPolicy(read="admin", write="admin"),
        "accessModifier": FieldPolicy(read="admin", write="admin"),
        "usersGroup": FieldPolicy(read="admin"),
    },
)

MEMBERSHIP_CATEGORY: EntityDefinition[MembershipCategory] = EntityDefinition(
    name=ENTITY_NAME,
    cache_prefix=CACHE_PREFIX,
    fields=MEMBERSHIP_CATEGORY_FIELDS,
    rules=MEMBERSHIP_CATEGORY_RULES,
    defaults=MEMBERSHIP_CATEGORY_DEFAULTS,
    table=MEMBERSHIP_CATEGORY_TABLE,
    permissions=MEMBERSHIP_CATEGORY_PERMISSIONS,
    build=build_membership_category,
    to_record=membership_category_to_record,
    system_fields=frozenset({"id", "categoryId", "tenantId", "createdAt", "updatedAt"}),
    parent_fields={"account": "accountId", "affiliate": "affiliateId"},
    derive=derive_display_fields,
    lookups=load_parental_leave_history,
    duplicate_message=MESSAGES["DUPLICATE"],
)
