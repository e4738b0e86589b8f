"""Record references accepted at the service boundary.

Callers may address a record by its internal id (a GUID) or by its
business id (e.g. 'mbc-0000042'). The string is classified once, here.
"""

import re
from dataclasses import dataclass

GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ByInternalId:
    value: str


@dataclass(frozen=True)
class ByBusinessId:
    value: str


EntityRef = ByInternalId | ByBusinessId


def parse_ref(raw: str) -> EntityRef:
    """Classify a reference string. GUID-shaped strings are internal ids."""
    value = (raw or "").strip()
    if GUID_PATTERN.match(value):
        return ByInternalId(value.lower())
    return ByBusinessId(value)
