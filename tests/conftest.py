"""Shared fixtures for memberforge tests."""

from datetime import date

import pytest

from memberforge.auth import ActorContext
from memberforge.events import EventService, RecordingEventSink
from memberforge.membership import MEMBERSHIP_CATEGORY_TABLE, build_membership_service
from memberforge.persistence import SQLiteRepository

TODAY = date(2025, 6, 15)


def account_candidate(**overrides):
    """A valid practising-OT candidate; keyword overrides replace fields (None removes)."""
    candidate = {
        "accountId": "acct-1",
        "membershipYear": "2025",
        "usersGroup": "OT",
        "eligibility": {"kind": "account", "value": "Q1"},
    }
    candidate.update(overrides)
    return {k: v for k, v in candidate.items() if v is not None}


def affiliate_candidate(**overrides):
    candidate = {
        "affiliateId": "aff-1",
        "membershipYear": "2025",
        "usersGroup": "AFFILIATE",
        "eligibility": {"kind": "affiliate", "value": "PRIMARY"},
    }
    candidate.update(overrides)
    return {k: v for k, v in candidate.items() if v is not None}


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def repository():
    """Connected in-memory repository for the membership category table."""
    repo = SQLiteRepository(MEMBERSHIP_CATEGORY_TABLE)
    repo.connect()
    yield repo
    repo.close()


@pytest.fixture
def sink():
    return RecordingEventSink()


@pytest.fixture
def service(repository, sink):
    return build_membership_service(
        repository,
        events=EventService([sink]),
        today=lambda: TODAY,
    )


@pytest.fixture
def owner():
    return ActorContext(user_id="user-1", tenant_id="tenant-1", role="owner")


@pytest.fixture
def admin():
    return ActorContext(user_id="admin-1", tenant_id="tenant-1", role="admin")


@pytest.fixture
def other_tenant_admin():
    return ActorContext(user_id="admin-2", tenant_id="tenant-2", role="admin")
