"""Generic entity orchestration: definitions, references and the CRUD service."""

from memberforge.entities.definition import EntityDefinition
from memberforge.entities.refs import ByBusinessId, ByInternalId, EntityRef, parse_ref
from memberforge.entities.service import (
    MAX_PAGE_SIZE,
    READ_RETRIES,
    BulkItemResult,
    BulkResult,
    EntityService,
    SaveResult,
)

__all__ = [
    "BulkItemResult",
    "BulkResult",
    "ByBusinessId",
    "ByInternalId",
    "EntityDefinition",
    "EntityRef",
    "EntityService",
    "MAX_PAGE_SIZE",
    "READ_RETRIES",
    "SaveResult",
    "parse_ref",
]
