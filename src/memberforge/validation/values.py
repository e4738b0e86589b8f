"""Value helpers shared by validators, rules and mappers.

Raw records arrive as JSON-ish dicts: dates are ISO strings, choices are
enum member names. These helpers read such values without raising.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, TypeVar

E = TypeVar("E", bound=Enum)


def is_blank(value: Any) -> bool:
    """Check if a value is considered empty."""
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, dict)) and len(value) == 0:
        return True
    return False


def parse_date(value: Any) -> date | None:
    """Read a calendar date from a date, datetime or ISO-8601 string.

    Datetime strings are truncated to their date part. Returns None for
    anything that is not a real calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def coerce_enum(enum_cls: type[E], value: Any) -> E | None:
    """Resolve an enum member from a member or its name.

    Names match case-insensitively. Numeric codes are not accepted here;
    those belong to the storage representation.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    name = value.strip().upper()
    return enum_cls.__members__.get(name)


def choice_name(value: Any) -> str | None:
    """Return the member name for an enum or a name string."""
    if isinstance(value, Enum):
        return value.name
    if isinstance(value, str) and value.strip():
        return value.strip().upper()
    return None
