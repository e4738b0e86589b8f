"""Persistence layer - repositories, list queries and storage configuration."""

from memberforge.persistence.adapter import Repository
from memberforge.persistence.config import DatabaseConfig, create_repository
from memberforge.persistence.query import (
    Condition,
    FilterOp,
    ListQuery,
    Page,
    parse_filter_params,
)
from memberforge.persistence.sqlite import SQLiteRepository, TableSpec, UniqueIndex

__all__ = [
    "Condition",
    "DatabaseConfig",
    "FilterOp",
    "ListQuery",
    "Page",
    "Repository",
    "SQLiteRepository",
    "TableSpec",
    "UniqueIndex",
    "create_repository",
    "parse_filter_params",
]
