"""List queries: filter conditions, pagination and result pages.

Conditions name internal fields and carry internal values; the
repository translates both through the entity mapper.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Generic, Iterable, Mapping, TypeVar

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20


class FilterOp(Enum):
    EQ = "eq"
    CONTAINS = "contains"
    IN = "in"


@dataclass(frozen=True)
class Condition:
    field: str
    op: FilterOp
    value: Any


@dataclass(frozen=True)
class ListQuery:
    """A filtered, paginated list request.

    Attributes:
        conditions: Conditions joined with AND
        page: 1-based page number
        page_size: Items per page
        include_inactive: Whether soft-deleted records are listed
    """

    conditions: tuple[Condition, ...] = ()
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    include_inactive: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def clamped(self, max_page_size: int) -> "ListQuery":
        """Return a copy with page >= 1 and 1 <= page_size <= max_page_size."""
        return replace(
            self,
            page=max(1, self.page),
            page_size=min(max(1, self.page_size), max_page_size),
        )

    def with_conditions(self, *conditions: Condition) -> "ListQuery":
        return replace(self, conditions=tuple(conditions) + self.conditions)


@dataclass
class Page(Generic[T]):
    items: list[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


def parse_filter_params(
    params: Mapping[str, str],
    reserved: Iterable[str] = (),
) -> tuple[Condition, ...]:
    """Turn query-string parameters into conditions.

    Supported forms:
        field=value            equality
        field__contains=text   substring match
        field__in=a,b,c        set membership
    """
    skip = set(reserved)
    conditions: list[Condition] = []
    for key, value in params.items():
        if key in skip:
            continue
        name, _, suffix = key.partition("__")
        if suffix == "contains":
            conditions.append(Condition(name, FilterOp.CONTAINS, value))
        elif suffix == "in":
            values = [v.strip() for v in value.split(",") if v.strip()]
            conditions.append(Condition(name, FilterOp.IN, values))
        elif suffix == "":
            conditions.append(Condition(name, FilterOp.EQ, value))
        else:
            raise ValueError(f"Unsupported filter operator '{suffix}'")
    return tuple(conditions)
