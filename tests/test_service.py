"""Tests for the membership category service (EntityService over SQLite)."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from conftest import TODAY, account_candidate, affiliate_candidate
from memberforge.entities import ByBusinessId, ByInternalId
from memberforge.errors import NotFoundError, PermissionDeniedError, StorageError, ValidationError
from memberforge.events import EventService
from memberforge.membership import MEMBERSHIP_CATEGORY_MAPPER, build_membership_service
from memberforge.membership.constants import MESSAGES
from memberforge.membership.enums import (
    AccountEligibility,
    Category,
    ParentalLeaveExpected,
    Privilege,
    Status,
    UserGroup,
)
from memberforge.membership.models import AccountReference, AffiliateReference, MembershipCategory
from memberforge.persistence import Condition, FilterOp, ListQuery
from memberforge.validation import Operation


def leave_candidate(**overrides):
    fields = {
        "eligibility": {"kind": "account", "value": "Q6"},
        "parentalLeaveFrom": "2024-01-01",
        "parentalLeaveTo": "2024-12-01",
        "membershipYear": "2024",
    }
    fields.update(overrides)
    return account_candidate(**fields)


async def seed(repository, **fields):
    """Store a record directly, bypassing validation."""
    entity = MembershipCategory(**{
        "user": AccountReference("acct-1"),
        "membership_year": "2025",
        "tenant_id": "tenant-1",
        **fields,
    })
    return await repository.create(MEMBERSHIP_CATEGORY_MAPPER.to_external(entity))


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_create(self, service, owner, sink):
        saved = await service.create(account_candidate(), owner)
        entity = saved.entity

        assert entity.business_id == "mbc-0000001"
        assert entity.tenant_id == "tenant-1"
        assert entity.category == Category.OT_PR
        assert entity.privilege == Privilege.OWNER
        assert entity.status == Status.ACTIVE
        assert entity.created_at is not None
        assert saved.warnings == []

        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.operation == Operation.CREATE
        assert event.entity_id == entity.id
        assert event.actor_id == "user-1"
        assert "accountId" in event.changed_fields

    @pytest.mark.asyncio
    async def test_system_keys_are_ignored(self, service, owner):
        candidate = account_candidate(id="forged", tenantId="tenant-9", categoryId="mbc-9999999")

        entity = (await service.create(candidate, owner)).entity

        assert entity.tenant_id == "tenant-1"
        assert entity.business_id == "mbc-0000001"
        assert entity.id != "forged"

    @pytest.mark.asyncio
    async def test_owner_cannot_set_privilege(self, service, owner, admin):
        by_owner = await service.create(account_candidate(privilege="MAIN"), owner)
        by_admin = await service.create(
            account_candidate(accountId="acct-2", privilege="MAIN"), admin
        )

        assert by_owner.entity.privilege == Privilege.OWNER
        assert by_admin.entity.privilege == Privilege.MAIN

    @pytest.mark.asyncio
    async def test_warnings_are_returned(self, service, owner):
        saved = await service.create(account_candidate(retirementStart="2020-01-01"), owner)
        assert [w.message for w in saved.warnings] == [MESSAGES["RETIREMENT_DATE_UNEXPECTED"]]

    @pytest.mark.asyncio
    async def test_invalid_candidate_is_not_stored(self, service, owner, sink):
        with pytest.raises(ValidationError) as exc_info:
            await service.create(account_candidate(affiliateId="aff-1"), owner)

        error = exc_info.value
        assert error.status_code == 400
        assert error.error_messages() == [MESSAGES["MULTIPLE_USER_REFERENCES"]]
        assert error.operation_id.startswith("create-")
        assert error.to_dict()["errors"] == [MESSAGES["MULTIPLE_USER_REFERENCES"]]

        page = await service.list(ListQuery(include_inactive=True), owner)
        assert page.total == 0
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_duplicate_year_is_a_validation_error(self, service, owner):
        await service.create(account_candidate(), owner)

        with pytest.raises(ValidationError) as exc_info:
            await service.create(account_candidate(), owner)

        assert exc_info.value.message == MESSAGES["DUPLICATE"]
        assert [i.code for i in exc_info.value.issues] == ["DUPLICATE"]

    @pytest.mark.asyncio
    async def test_requires_actor(self, service):
        with pytest.raises(PermissionDeniedError):
            await service.create(account_candidate(), None)

    @pytest.mark.asyncio
    async def test_operation_id_is_propagated(self, service, owner):
        with pytest.raises(ValidationError) as exc_info:
            await service.create(account_candidate(accountId=None), owner, operation_id="req-42")
        assert exc_info.value.operation_id == "req-42"

    @pytest.mark.asyncio
    async def test_integer_year_is_stored_as_text(self, service, owner):
        entity = (await service.create(account_candidate(membershipYear=2025), owner)).entity
        assert entity.membership_year == "2025"

    @pytest.mark.asyncio
    async def test_reference_with_parentheses_is_a_validation_error(self, service, owner):
        with pytest.raises(ValidationError) as exc_info:
            await service.create(account_candidate(accountId="acct(1)"), owner)

        assert exc_info.value.error_messages() == ["Account must not contain parentheses"]
        assert (await service.list(ListQuery(include_inactive=True), owner)).total == 0

    @pytest.mark.asyncio
    async def test_unstorable_value_is_a_validation_error(self, service, owner, monkeypatch):
        def refuse(entity):
            raise ValueError("Reference id cannot contain parentheses")

        monkeypatch.setattr(service.definition.mapper, "to_external", refuse)

        with pytest.raises(ValidationError, match="cannot contain parentheses") as exc_info:
            await service.create(account_candidate(), owner, operation_id="req-7")
        assert exc_info.value.status_code == 400
        assert exc_info.value.operation_id == "req-7"

    @pytest.mark.asyncio
    async def test_write_failures_are_not_retried(self, service, repository, owner):
        repository.create = AsyncMock(side_effect=StorageError(detail="database is locked"))

        with pytest.raises(StorageError) as exc_info:
            await service.create(account_candidate(), owner)

        assert repository.create.call_count == 1
        assert exc_info.value.message == "Storage operation failed"
        assert exc_info.value.detail == "database is locked"

    @pytest.mark.asyncio
    async def test_failing_event_sink_does_not_fail_create(self, repository, owner):
        broken = AsyncMock()
        broken.publish = AsyncMock(side_effect=RuntimeError("sink down"))
        service = build_membership_service(
            repository, events=EventService([broken]), today=lambda: TODAY
        )

        saved = await service.create(account_candidate(), owner)

        assert saved.entity.business_id == "mbc-0000001"
        broken.publish.assert_awaited_once()


class TestParentalLeaveHistory:
    @pytest.mark.asyncio
    async def test_option_used_in_earlier_year(self, service, owner):
        await service.create(leave_candidate(parentalLeaveExpected="FULL_YEAR"), owner)

        with pytest.raises(ValidationError) as exc_info:
            await service.create(
                leave_candidate(
                    membershipYear="2025",
                    parentalLeaveFrom="2025-01-01",
                    parentalLeaveTo="2025-06-01",
                    parentalLeaveExpected="FULL_YEAR",
                ),
                owner,
            )

        assert exc_info.value.error_messages() == [
            "Full Year (12 months) parental leave has already been used. "
            "Each parental leave option can only be used once"
        ]

    @pytest.mark.asyncio
    async def test_inactive_records_count_as_used(self, service, repository, owner):
        await seed(
            repository,
            membership_year="2023",
            parental_leave_expected=ParentalLeaveExpected.SIX_MONTHS,
            status=Status.INACTIVE,
        )

        with pytest.raises(ValidationError):
            await service.create(leave_candidate(parentalLeaveExpected="SIX_MONTHS"), owner)

    @pytest.mark.asyncio
    async def test_other_accounts_do_not_count(self, service, owner):
        await service.create(
            leave_candidate(accountId="acct-2", parentalLeaveExpected="FULL_YEAR"), owner
        )

        saved = await service.create(leave_candidate(parentalLeaveExpected="FULL_YEAR"), owner)
        assert saved.entity.parental_leave_expected == ParentalLeaveExpected.FULL_YEAR


class TestValidateDryRun:
    @pytest.mark.asyncio
    async def test_nothing_is_stored(self, service, owner, sink):
        result = await service.validate(account_candidate(), owner)

        assert result.ok
        assert (await service.list(ListQuery(), owner)).total == 0
        assert sink.events == []

    @pytest.mark.asyncio
    async def test_reports_errors(self, service, owner):
        result = await service.validate(account_candidate(accountId=None), owner)
        assert result.error_messages() == [MESSAGES["NO_USER_REFERENCE"]]


# =============================================================================
# Read
# =============================================================================


class TestGet:
    @pytest.mark.asyncio
    async def test_by_internal_and_business_id(self, service, owner):
        created = (await service.create(account_candidate(), owner)).entity

        assert (await service.get(created.id, owner)) == created
        assert (await service.get("mbc-0000001", owner)) == created
        assert (await service.get(ByBusinessId("mbc-0000001"), owner)) == created

    @pytest.mark.asyncio
    async def test_read_through_cache(self, service, repository, owner):
        created = (await service.create(account_candidate(), owner)).entity
        await service.get(created.id, owner)

        repository.find_by_id = AsyncMock(side_effect=AssertionError("storage hit"))

        assert (await service.get(ByInternalId(created.id), owner)) == created

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ref",
        ["mbc-0000099", "not-a-reference", "3f1c2d9e-0000-4000-8000-000000000001", ""],
    )
    async def test_unknown_references_are_not_found(self, service, owner, ref):
        with pytest.raises(NotFoundError) as exc_info:
            await service.get(ref, owner)
        assert exc_info.value.message == "Record not found"

    @pytest.mark.asyncio
    async def test_other_tenant_records_are_not_found(self, service, owner, other_tenant_admin):
        created = (await service.create(account_candidate(), owner)).entity

        with pytest.raises(NotFoundError):
            await service.get(created.id, other_tenant_admin)

    @pytest.mark.asyncio
    async def test_reads_are_retried(self, service, repository, owner):
        stored = await seed(repository)
        repository.find_by_id = AsyncMock(
            side_effect=[StorageError(detail="disk I/O error"), stored]
        )

        entity = await service.get(stored["id"], owner)

        assert entity.id == stored["id"]
        assert repository.find_by_id.call_count == 2

    @pytest.mark.asyncio
    async def test_read_retries_are_bounded(self, service, repository, owner):
        repository.find_by_id = AsyncMock(side_effect=StorageError(detail="disk I/O error"))

        with pytest.raises(StorageError):
            await service.get("3f1c2d9e-0000-4000-8000-000000000001", owner)

        assert repository.find_by_id.call_count == 3


class TestPresent:
    @pytest.mark.asyncio
    async def test_owner_view(self, service, owner):
        entity = (await service.create(account_candidate(), owner)).entity
        record = service.present(entity, owner)

        assert record["categoryId"] == "mbc-0000001"
        assert record["userType"] == "account"
        assert record["isActive"] is True
        assert record["isRetired"] is False
        assert record["hasParentalLeave"] is False
        assert "privilege" not in record
        assert "usersGroup" not in record

    @pytest.mark.asyncio
    async def test_admin_view(self, service, admin):
        entity = (await service.create(leave_candidate(
            membershipYear="2025", parentalLeaveFrom="2025-01-01", parentalLeaveTo="2025-12-31"
        ), admin)).entity
        record = service.present(entity, admin)

        assert record["privilege"] == "OWNER"
        assert record["usersGroup"] == "OT"
        assert record["onParentalLeave"] is True


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    @pytest.mark.asyncio
    async def test_partial_update(self, service, owner, admin, sink):
        created = (await service.create(account_candidate(), owner)).entity

        saved = await service.update(
            "mbc-0000001",
            {"eligibility": {"kind": "account", "value": "Q2"}, "category": "OT_NP"},
            admin,
        )

        assert saved.entity.category == Category.OT_NP
        assert saved.entity.eligibility == AccountEligibility.Q2
        assert saved.entity.users_group == UserGroup.OT
        assert saved.entity.created_at == created.created_at
        assert sink.events[-1].operation == Operation.UPDATE
        assert sink.events[-1].changed_fields == ("category", "eligibility")

    @pytest.mark.asyncio
    async def test_stale_future_date_is_left_untouched(self, service, repository, admin, sink):
        stored = await seed(
            repository,
            category=Category.OT_NP,
            eligibility=AccountEligibility.Q6,
            users_group=UserGroup.OT,
            parental_leave_from=date(2025, 9, 1),
            parental_leave_to=date(2026, 3, 1),
        )

        saved = await service.update(stored["id"], {"status": "INACTIVE"}, admin)

        assert saved.entity.status == Status.INACTIVE
        assert saved.entity.parental_leave_from == date(2025, 9, 1)
        assert sink.events[-1].changed_fields == ("status",)

    @pytest.mark.asyncio
    async def test_invalid_change_is_rejected(self, service, owner, admin):
        created = (await service.create(account_candidate(), owner)).entity

        with pytest.raises(ValidationError):
            await service.update(created.id, {"membershipYear": "1999"}, admin)

        assert (await service.get(created.id, admin)).membership_year == "2025"

    @pytest.mark.asyncio
    async def test_owner_cannot_update(self, service, owner):
        created = (await service.create(account_candidate(), owner)).entity

        with pytest.raises(PermissionDeniedError) as exc_info:
            await service.update(created.id, {"membershipYear": "2026"}, owner)

        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_system_keys_only_is_a_no_op(self, service, owner, admin, sink):
        created = (await service.create(account_candidate(), owner)).entity

        saved = await service.update(created.id, {"tenantId": "tenant-2", "id": "x"}, admin)

        assert saved.entity == created
        assert len(sink.events) == 1

    @pytest.mark.asyncio
    async def test_update_invalidates_cache(self, service, owner, admin):
        created = (await service.create(account_candidate(), owner)).entity
        await service.get(created.id, owner)

        await service.update(created.id, {"membershipYear": "2026"}, admin)

        assert (await service.get(created.id, owner)).membership_year == "2026"

    @pytest.mark.asyncio
    async def test_other_tenant_cannot_update(self, service, owner, other_tenant_admin):
        created = (await service.create(account_candidate(), owner)).entity

        with pytest.raises(NotFoundError):
            await service.update(created.id, {"membershipYear": "2026"}, other_tenant_admin)


# =============================================================================
# Delete
# =============================================================================


class TestDelete:
    @pytest.mark.asyncio
    async def test_soft_delete_is_idempotent(self, service, owner, admin, sink):
        created = (await service.create(account_candidate(), owner)).entity

        assert await service.delete(created.id, admin) is True
        assert await service.delete(created.id, admin) is True

        assert (await service.get(created.id, admin)).status == Status.INACTIVE
        deletes = [e for e in sink.events if e.operation == Operation.DELETE]
        assert len(deletes) == 1
        assert deletes[0].changed_fields == ("status",)

    @pytest.mark.asyncio
    async def test_deleted_records_leave_default_listing(self, service, owner, admin):
        created = (await service.create(account_candidate(), owner)).entity
        await service.delete(created.id, admin)

        assert (await service.list(ListQuery(), owner)).total == 0
        assert (await service.list(ListQuery(include_inactive=True), owner)).total == 1

    @pytest.mark.asyncio
    async def test_year_can_be_reused_after_delete(self, service, owner, admin):
        created = (await service.create(account_candidate(), owner)).entity
        await service.delete(created.id, admin)

        again = await service.create(account_candidate(), owner)
        assert again.entity.business_id == "mbc-0000002"

    @pytest.mark.asyncio
    async def test_owner_cannot_delete(self, service, owner):
        created = (await service.create(account_candidate(), owner)).entity

        with pytest.raises(PermissionDeniedError):
            await service.delete(created.id, owner)


# =============================================================================
# List
# =============================================================================


class TestList:
    @pytest.mark.asyncio
    async def test_scoped_to_tenant(self, service, owner, other_tenant_admin):
        await service.create(account_candidate(), owner)
        await service.create(account_candidate(accountId="acct-2"), owner)
        await service.create(account_candidate(), other_tenant_admin)

        page = await service.list(ListQuery(), owner)

        assert page.total == 2
        assert {e.tenant_id for e in page.items} == {"tenant-1"}

    @pytest.mark.asyncio
    async def test_filters(self, service, owner):
        await service.create(account_candidate(), owner)
        await service.create(account_candidate(accountId="acct-2", usersGroup="OTHER"), owner)
        await service.create(affiliate_candidate(), owner)

        by_category = await service.list(
            ListQuery(conditions=(Condition("category", FilterOp.IN, ["ASSOC", "AFF_PRIM"]),)),
            owner,
        )
        by_account = await service.list(
            ListQuery(conditions=(Condition("accountId", FilterOp.EQ, "acct-1"),)), owner
        )

        assert by_category.total == 2
        assert [e.user for e in by_account.items] == [AccountReference("acct-1")]

    @pytest.mark.asyncio
    async def test_page_size_is_clamped(self, service, owner):
        page = await service.list(ListQuery(page_size=1000), owner)
        assert page.page_size == 100

    @pytest.mark.asyncio
    async def test_total_counts_all_matches(self, service, owner):
        for n in range(3):
            await service.create(account_candidate(accountId=f"acct-{n}"), owner)

        page = await service.list(ListQuery(page=1, page_size=2), owner)

        assert len(page.items) == 2
        assert page.total == 3
        assert page.has_more is True

    @pytest.mark.asyncio
    async def test_unknown_filter_field(self, service, owner):
        with pytest.raises(ValidationError, match="Unknown filter field 'nickname'"):
            await service.list(
                ListQuery(conditions=(Condition("nickname", FilterOp.EQ, "x"),)), owner
            )

    @pytest.mark.asyncio
    async def test_invalid_filter_value(self, service, owner):
        with pytest.raises(ValidationError, match="Invalid filter value for 'category'"):
            await service.list(
                ListQuery(conditions=(Condition("category", FilterOp.EQ, "BOGUS"),)), owner
            )

    @pytest.mark.asyncio
    async def test_contains_on_choice_field(self, service, owner):
        await service.create(account_candidate(category="OT_PR"), owner)

        with pytest.raises(ValidationError, match="'category' does not support contains"):
            await service.list(
                ListQuery(conditions=(Condition("category", FilterOp.CONTAINS, "PR"),)), owner
            )

    @pytest.mark.asyncio
    async def test_contains_on_text_field(self, service, owner):
        await service.create(account_candidate(accountId="acct-17"), owner)
        await service.create(account_candidate(accountId="acct-2"), owner)

        page = await service.list(
            ListQuery(conditions=(Condition("accountId", FilterOp.CONTAINS, "17"),)), owner
        )

        assert [e.user for e in page.items] == [AccountReference("acct-17")]

    @pytest.mark.asyncio
    async def test_unreadable_rows_are_skipped(self, service, repository, owner):
        await seed(repository)
        await seed(repository, user=AffiliateReference("aff-1"))
        broken = await seed(repository, user=AccountReference("acct-3"))
        await repository.update(broken["id"], {"affiliate_ref": "/affiliates(aff-3)"})

        page = await service.list(ListQuery(), owner)

        assert page.total == 3
        assert len(page.items) == 2


class TestListForParent:
    @pytest.mark.asyncio
    async def test_all_records_of_one_account(self, service, owner, admin):
        await service.create(account_candidate(membershipYear="2024"), owner)
        created = (await service.create(account_candidate(), owner)).entity
        await service.create(account_candidate(accountId="acct-2"), owner)
        await service.delete(created.id, admin)

        items = await service.list_for_parent("account", "acct-1", owner)

        assert sorted(e.membership_year for e in items) == ["2024", "2025"]

    @pytest.mark.asyncio
    async def test_cached_until_a_write(self, service, repository, owner):
        await service.create(account_candidate(), owner)
        assert len(await service.list_for_parent("account", "acct-1", owner)) == 1

        original_list = repository.list
        repository.list = AsyncMock(side_effect=AssertionError("storage hit"))
        assert len(await service.list_for_parent("account", "acct-1", owner)) == 1

        repository.list = original_list
        await service.create(account_candidate(membershipYear="2024"), owner)
        assert len(await service.list_for_parent("account", "acct-1", owner)) == 2

    @pytest.mark.asyncio
    async def test_unknown_kind(self, service, owner):
        with pytest.raises(ValidationError, match="Unknown parent kind 'vendor'"):
            await service.list_for_parent("vendor", "v-1", owner)


# =============================================================================
# Bulk
# =============================================================================


class TestBulkCreate:
    @pytest.mark.asyncio
    async def test_partial_success(self, service, owner):
        result = await service.bulk_create(
            [
                account_candidate(),
                account_candidate(accountId=None),
                affiliate_candidate(),
                account_candidate(),
            ],
            owner,
        )

        assert result.created == 2
        assert result.failed == 2
        assert [item.ok for item in result.items] == [True, False, True, False]
        assert result.items[1].error.error_messages() == [MESSAGES["NO_USER_REFERENCE"]]
        assert result.items[3].error.message == MESSAGES["DUPLICATE"]
        assert (await service.list(ListQuery(), owner)).total == 2

    @pytest.mark.asyncio
    async def test_item_limit(self, service, owner):
        with pytest.raises(ValidationError, match="limited to 100 items"):
            await service.bulk_create([account_candidate()] * 101, owner)

    @pytest.mark.asyncio
    async def test_unstorable_reference_fails_only_its_item(self, service, owner):
        result = await service.bulk_create(
            [
                account_candidate(),
                account_candidate(accountId="acct(2)"),
                account_candidate(accountId="acct-3"),
            ],
            owner,
        )

        assert result.created == 2
        assert result.failed == 1
        assert [item.ok for item in result.items] == [True, False, True]
        assert result.items[1].error.status_code == 400
