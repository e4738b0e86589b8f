"""Factories wiring the membership category service."""

import logging
from datetime import date
from typing import Callable

from memberforge.cache import RecordCache
from memberforge.entities import EntityService
from memberforge.events import EventService
from memberforge.membership.definition import MEMBERSHIP_CATEGORY, MEMBERSHIP_CATEGORY_TABLE
from memberforge.membership.models import MembershipCategory
from memberforge.persistence import DatabaseConfig, Repository, SQLiteRepository, create_repository

logger = logging.getLogger(__name__)

MembershipCategoryService = EntityService[MembershipCategory]


def create_membership_repository(config: DatabaseConfig) -> SQLiteRepository:
    """Repository for the membership category table (not yet connected)."""
    return create_repository(config, MEMBERSHIP_CATEGORY_TABLE)


def build_membership_service(
    repository: Repository,
    *,
    events: EventService | None = None,
    cache: RecordCache | None = None,
    max_page_size: int | None = None,
    read_retries: int | None = None,
    today: Callable[[], date] = date.today,
) -> MembershipCategoryService:
    options = {}
    if max_page_size is not None:
        options["max_page_size"] = max_page_size
    if read_retries is not None:
        options["read_retries"] = read_retries

    service: MembershipCategoryService = EntityService(
        MEMBERSHIP_CATEGORY,
        repository,
        events=events,
        cache=cache,
        today=today,
        **options,
    )
    logger.debug("Membership category service ready (page size %d)", service.max_page_size)
    return service
