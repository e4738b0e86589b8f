"""Repository Protocol: the storage collaborator used by entity services."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from memberforge.persistence.query import ListQuery


@runtime_checkable
class Repository(Protocol):
    """Interface all repositories must implement.

    Rows are storage representations produced by an EntityMapper. The
    repository assigns the internal id, the business id and the audit
    timestamps. Failures are raised as StorageError, with `conflict` set
    for uniqueness violations.
    """

    def connect(self) -> None: ...

    def close(self) -> None: ...

    async def create(self, row: dict[str, Any]) -> dict[str, Any]: ...

    async def find_by_id(self, id: str) -> dict[str, Any] | None: ...

    async def find_by_business_id(self, business_id: str) -> dict[str, Any] | None: ...

    async def update(self, id: str, row: dict[str, Any]) -> dict[str, Any] | None: ...

    async def list(self, query: ListQuery) -> tuple[list[dict[str, Any]], int]: ...
