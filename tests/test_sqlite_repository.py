"""Tests for the SQLite repository and business id sequences."""

import sqlite3

import pytest

from memberforge.errors import StorageError
from memberforge.membership import MEMBERSHIP_CATEGORY_MAPPER, MEMBERSHIP_CATEGORY_TABLE
from memberforge.membership.enums import Status
from memberforge.membership.models import (
    AccountReference,
    AffiliateReference,
    MembershipCategory,
)
from memberforge.persistence import (
    Condition,
    DatabaseConfig,
    FilterOp,
    ListQuery,
    Repository,
    SQLiteRepository,
    create_repository,
)
from memberforge.persistence.sequences import SequenceService


def row_for(user, year="2025", tenant="tenant-1", status=Status.ACTIVE):
    entity = MembershipCategory(user=user, membership_year=year, tenant_id=tenant, status=status)
    return MEMBERSHIP_CATEGORY_MAPPER.to_external(entity)


# =============================================================================
# Sequences
# =============================================================================


class TestSequenceService:
    @pytest.fixture
    def sequences(self):
        conn = sqlite3.connect(":memory:")
        yield SequenceService(conn)
        conn.close()

    def test_first_id_starts_at_1(self, sequences):
        assert sequences.next_id("membership_category", "mbc") == "mbc-0000001"

    def test_ids_increment(self, sequences):
        sequences.next_id("membership_category", "mbc")
        assert sequences.next_id("membership_category", "mbc") == "mbc-0000002"
        assert sequences.current_value("membership_category") == 2

    def test_separate_sequences(self, sequences):
        sequences.next_id("a", "a")
        assert sequences.next_id("b", "b", digits=3) == "b-001"

    def test_current_value_of_unused_sequence(self, sequences):
        assert sequences.current_value("unused") == 0


# =============================================================================
# Repository
# =============================================================================


class TestSQLiteRepository:
    def test_satisfies_protocol(self, repository):
        assert isinstance(repository, Repository)

    @pytest.mark.asyncio
    async def test_create_assigns_system_columns(self, repository):
        stored = await repository.create(row_for(AccountReference("acct-1")))

        assert len(stored["id"]) == 36
        assert stored["business_id"] == "mbc-0000001"
        assert stored["created_at"] == stored["updated_at"]
        assert stored["account_ref"] == "/accounts(acct-1)"

    @pytest.mark.asyncio
    async def test_find_by_id_and_business_id(self, repository):
        stored = await repository.create(row_for(AccountReference("acct-1")))

        assert (await repository.find_by_id(stored["id"]))["business_id"] == "mbc-0000001"
        assert (await repository.find_by_business_id("mbc-0000001"))["id"] == stored["id"]
        assert await repository.find_by_id("missing") is None

    @pytest.mark.asyncio
    async def test_update_keeps_identity_columns(self, repository):
        stored = await repository.create(row_for(AccountReference("acct-1")))
        changes = dict(stored, membership_year="2026", business_id="mbc-9999999", tenant_id="x")

        updated = await repository.update(stored["id"], changes)

        assert updated["membership_year"] == "2026"
        assert updated["business_id"] == "mbc-0000001"
        assert updated["tenant_id"] == "tenant-1"
        assert updated["created_at"] == stored["created_at"]

    @pytest.mark.asyncio
    async def test_update_missing_row(self, repository):
        assert await repository.update("missing", row_for(AccountReference("acct-1"))) is None

    @pytest.mark.asyncio
    async def test_one_active_category_per_user_and_year(self, repository):
        await repository.create(row_for(AccountReference("acct-1")))

        with pytest.raises(StorageError) as exc_info:
            await repository.create(row_for(AccountReference("acct-1")))

        assert exc_info.value.conflict is True
        assert "UNIQUE" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_inactive_rows_do_not_conflict(self, repository):
        await repository.create(row_for(AccountReference("acct-1"), status=Status.INACTIVE))
        await repository.create(row_for(AccountReference("acct-1")))
        await repository.create(row_for(AccountReference("acct-1"), tenant="tenant-2"))
        await repository.create(row_for(AffiliateReference("acct-1")))

        rows, total = await repository.list(ListQuery())
        assert total == 4

    @pytest.mark.asyncio
    async def test_list_filters_and_paginates(self, repository):
        for n in range(5):
            await repository.create(row_for(AccountReference(f"acct-{n}")))
        await repository.create(row_for(AccountReference("other"), tenant="tenant-2"))

        query = ListQuery(
            conditions=(Condition("tenantId", FilterOp.EQ, "tenant-1"),),
            page=2,
            page_size=2,
        )
        rows, total = await repository.list(query)

        assert total == 5
        assert [r["business_id"] for r in rows] == ["mbc-0000003", "mbc-0000004"]

    @pytest.mark.asyncio
    async def test_list_operators(self, repository):
        await repository.create(row_for(AccountReference("acct-1"), year="2024"))
        await repository.create(row_for(AccountReference("acct-2"), year="2025"))
        await repository.create(row_for(AffiliateReference("aff_1"), year="2025"))

        _, total = await repository.list(
            ListQuery(conditions=(Condition("membershipYear", FilterOp.IN, ["2024", "2025"]),))
        )
        assert total == 3

        _, total = await repository.list(
            ListQuery(conditions=(Condition("membershipYear", FilterOp.IN, []),))
        )
        assert total == 0

        _, total = await repository.list(
            ListQuery(conditions=(Condition("affiliateId", FilterOp.EQ, None),))
        )
        assert total == 2

        # '_' is matched literally, not as a wildcard
        _, total = await repository.list(
            ListQuery(conditions=(Condition("affiliateId", FilterOp.CONTAINS, "f_1"),))
        )
        assert total == 1

    @pytest.mark.asyncio
    async def test_not_connected(self):
        repo = SQLiteRepository(MEMBERSHIP_CATEGORY_TABLE)
        with pytest.raises(RuntimeError, match="not connected"):
            await repo.find_by_id("x")


class TestRepositoryFactory:
    def test_sqlite_url(self, tmp_path):
        config = DatabaseConfig(url=f"sqlite:///{tmp_path / 'nested' / 'db.sqlite'}")
        repo = create_repository(config, MEMBERSHIP_CATEGORY_TABLE)

        assert isinstance(repo, SQLiteRepository)
        assert (tmp_path / "nested").is_dir()

    def test_unsupported_url(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_repository(DatabaseConfig(url="postgresql://db/x"), MEMBERSHIP_CATEGORY_TABLE)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setenv("MEMBERFORGE_DB_PATH", str(tmp_path / "m.db"))

        assert DatabaseConfig.from_env().sqlite_path == str(tmp_path / "m.db")
