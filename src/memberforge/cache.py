"""In-process record cache with invalidate-on-write semantics.

There is no TTL: entries live until a writer invalidates them or the
cache is full, in which case the oldest entry is evicted.
"""

import logging
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024


def entity_key(prefix: str, tenant_id: str, id: str) -> str:
    """Key for one record, e.g. 'membership-category:t1:id:<uuid>'."""
    return f"{prefix}:{tenant_id}:id:{id}"


def aggregate_key(prefix: str, tenant_id: str, kind: str, parent_id: str) -> str:
    """Key for all records of one parent, e.g. 'membership-category:t1:account:acct-1'."""
    return f"{prefix}:{tenant_id}:{kind}:{parent_id}"


class RecordCache:
    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, Any] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Any | None:
        return self._entries.get(key)

    def set(self, key: str, value: Any) -> None:
        if key in self._entries:
            self._entries.move_to_end(key)
        self._entries[key] = value
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache full, evicted %s", evicted)

    def invalidate(self, *keys: str) -> None:
        for key in keys:
            self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
