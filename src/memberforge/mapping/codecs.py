"""Value codecs between internal values and the storage representation.

Each codec converts one field independently. `encode` is strict and
raises ValueError for values it cannot represent; `decode` is lenient
and returns None for anything it does not recognise, so one bad column
never makes a whole record unreadable.
"""

import logging
import re
from datetime import date, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from memberforge.validation.values import coerce_enum, parse_date, parse_datetime

logger = logging.getLogger(__name__)


@runtime_checkable
class Codec(Protocol):
    """Converts one field between internal and storage form."""

    storage_type: str

    def encode(self, value: Any) -> Any: ...

    def decode(self, raw: Any) -> Any: ...


class TextCodec:
    storage_type = "TEXT"

    def encode(self, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError(f"Expected text, got {type(value).__name__}")
        return value

    def decode(self, raw: Any) -> str | None:
        if raw is None:
            return None
        if isinstance(raw, (str, int)) and not isinstance(raw, bool):
            return str(raw)
        return None


class ChoiceCodec:
    """Enum members stored as their integer option codes.

    The enum's values are the storage codes; internally members (or their
    names) are used.
    """

    storage_type = "INTEGER"

    def __init__(self, enum_cls: type[Enum]):
        self.enum_cls = enum_cls

    def encode(self, value: Any) -> int | None:
        if value is None:
            return None
        member = coerce_enum(self.enum_cls, value)
        if member is None:
            raise ValueError(f"'{value}' is not a valid {self.enum_cls.__name__}")
        return member.value

    def decode(self, raw: Any) -> Enum | None:
        if raw is None:
            return None
        if isinstance(raw, bool) or not isinstance(raw, int):
            logger.warning("Unexpected %s code %r, treating as empty", self.enum_cls.__name__, raw)
            return None
        try:
            return self.enum_cls(raw)
        except ValueError:
            logger.warning("Unknown %s code %r, treating as empty", self.enum_cls.__name__, raw)
            return None


class DateCodec:
    """Calendar dates stored as 'YYYY-MM-DD'."""

    storage_type = "TEXT"

    def encode(self, value: Any) -> str | None:
        if value is None:
            return None
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError(f"'{value}' is not a valid date")
        return parsed.isoformat()

    def decode(self, raw: Any) -> date | None:
        if raw is None:
            return None
        parsed = parse_date(raw)
        if parsed is None:
            logger.warning("Malformed date %r, treating as empty", raw)
        return parsed


class DateTimeCodec:
    """Timestamps stored as ISO-8601 strings."""

    storage_type = "TEXT"

    def encode(self, value: Any) -> str | None:
        if value is None:
            return None
        parsed = parse_datetime(value)
        if parsed is None:
            raise ValueError(f"'{value}' is not a valid timestamp")
        return parsed.isoformat()

    def decode(self, raw: Any) -> datetime | None:
        if raw is None:
            return None
        parsed = parse_datetime(raw)
        if parsed is None:
            logger.warning("Malformed timestamp %r, treating as empty", raw)
        return parsed


class BindCodec:
    """References to records of another collection, stored as binding strings.

    An id 'acct-1' in collection 'accounts' is stored as '/accounts(acct-1)'.
    Bare ids are accepted on decode.
    """

    storage_type = "TEXT"

    def __init__(self, collection: str):
        self.collection = collection
        self._pattern = re.compile(rf"^/{re.escape(collection)}\((?P<id>[^()]+)\)$")

    def encode(self, value: Any) -> str | None:
        if value is None:
            return None
        if not isinstance(value, str) or not value.strip() or "(" in value or ")" in value:
            raise ValueError(f"'{value}' is not a valid {self.collection} reference")
        return f"/{self.collection}({value.strip()})"

    def decode(self, raw: Any) -> str | None:
        if raw is None:
            return None
        if not isinstance(raw, str) or not raw.strip():
            return None
        match = self._pattern.match(raw.strip())
        if match:
            return match.group("id")
        if raw.startswith("/") or "(" in raw:
            logger.warning("Malformed %s binding %r, treating as empty", self.collection, raw)
            return None
        return raw.strip()
