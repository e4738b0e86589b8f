"""Entity mapper: typed entity <-> storage row.

Mapping happens in two steps. A domain-supplied `flatten` turns the entity
into a flat dict of typed values keyed by internal field name; each field
is then encoded by its own codec into a storage column. Reading runs the
same steps backwards, with `assemble` building the entity from the decoded
flat dict.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, TypeVar

from memberforge.mapping.codecs import Codec

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class FieldMapping:
    """One internal field and the storage column that holds it."""

    internal: str
    column: str
    codec: Codec


class EntityMapper(Generic[E]):
    def __init__(
        self,
        mappings: Iterable[FieldMapping],
        flatten: Callable[[E], dict[str, Any]],
        assemble: Callable[[dict[str, Any]], E | None],
    ):
        self.mappings = tuple(mappings)
        self._by_internal = {m.internal: m for m in self.mappings}
        self._flatten = flatten
        self._assemble = assemble

    @property
    def columns(self) -> list[tuple[str, str]]:
        """(column, storage type) pairs in declaration order."""
        return [(m.column, m.codec.storage_type) for m in self.mappings]

    def column_for(self, field: str) -> str:
        """Storage column for an internal field name. Raises KeyError if unmapped."""
        return self._by_internal[field].column

    def is_text(self, field: str) -> bool:
        """True when the field is stored as TEXT. Raises KeyError if unmapped."""
        return self._by_internal[field].codec.storage_type == "TEXT"

    def encode_value(self, field: str, value: Any) -> Any:
        """Encode one internal value, e.g. for a filter.

        Raises:
            KeyError: The field is not mapped
            ValueError: The value cannot be represented
        """
        return self._by_internal[field].codec.encode(value)

    def to_external(self, entity: E) -> dict[str, Any]:
        flat = self._flatten(entity)
        return {m.column: m.codec.encode(flat.get(m.internal)) for m in self.mappings}

    def to_internal(self, row: dict[str, Any]) -> E | None:
        """Build an entity from a storage row.

        Unknown or malformed column values decode to None. Returns None
        when the row cannot form an entity at all.
        """
        flat = {m.internal: m.codec.decode(row.get(m.column)) for m in self.mappings}
        entity = self._assemble(flat)
        if entity is None:
            logger.warning("Unreadable row skipped (id=%s)", row.get("id"))
        return entity
