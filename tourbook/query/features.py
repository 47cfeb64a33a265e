"""Translate raw query-string parameters into a store-independent query spec.

A request such as ``?duration[gte]=5&price[lt]=1000&sort=-price&page=2`` becomes
a :class:`QuerySpec` holding typed filter expressions, sort keys, a field
projection and a skip/limit pair. Nothing is executed here; the store adapter
decides how a spec maps onto an actual query.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tourbook.core import config
from tourbook.core.errors import ValidationError

RESERVED_KEYS = ("page", "sort", "limit", "fields")
DEFAULT_SORT = "-created_at"
DEFAULT_EXCLUDED_FIELDS = ("version",)
# Largest OFFSET a signed 64-bit database integer can hold.
MAX_OFFSET = 2**63 - 1

_BRACKETED_KEY = re.compile(r"^(?P<field>[^\[\]]+)\[(?P<operator>[^\[\]]+)\]$")


class FilterOperator(str, Enum):
    EQ = "eq"
    IN = "in"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


# Only these may be written by clients inside brackets.
COMPARISON_OPERATORS = {
    "gt": FilterOperator.GT,
    "gte": FilterOperator.GTE,
    "lt": FilterOperator.LT,
    "lte": FilterOperator.LTE,
}


@dataclass(frozen=True)
class FilterExpression:
    field: str
    operator: FilterOperator
    value: Any


@dataclass(frozen=True)
class SortKey:
    field: str
    descending: bool = False


@dataclass
class QuerySpec:
    filters: list[FilterExpression] = field(default_factory=list)
    sort: list[SortKey] = field(default_factory=list)
    include_fields: list[str] = field(default_factory=list)
    exclude_fields: list[str] = field(default_factory=list)
    skip: int = 0
    limit: int | None = None


def normalize_params(raw: Mapping[str, Any] | Iterable[tuple[str, str]]) -> dict[str, str | list[str]]:
    """Collapse a mapping or a multi-item sequence into key -> value | [values]."""
    items = raw.items() if isinstance(raw, Mapping) else raw
    params: dict[str, str | list[str]] = {}
    for key, value in items:
        values = list(value) if isinstance(value, (list, tuple)) else [value]
        for item in values:
            item = str(item)
            if key not in params:
                params[key] = item
            elif isinstance(params[key], list):
                params[key].append(item)
            else:
                params[key] = [params[key], item]
    return params


def _split_csv(value: str | list[str]) -> list[str]:
    values = value if isinstance(value, list) else [value]
    return [part.strip() for item in values for part in item.split(",") if part.strip()]


def _last(value: str | list[str]) -> str:
    return value[-1] if isinstance(value, list) else value


def _positive_int(name: str, value: str | list[str] | None, default: int) -> int:
    if value is None or _last(value) == "":
        return default
    try:
        number = int(_last(value))
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}: {_last(value)}") from exc
    if number < 1:
        raise ValidationError(f"Invalid {name}: {number}. It must be at least 1.")
    return number


class QueryFeatures:
    """Chainable builder mirroring the filter/sort/fields/paginate steps."""

    def __init__(self, params: Mapping[str, Any] | Iterable[tuple[str, str]]) -> None:
        self.params = normalize_params(params)
        self.spec = QuerySpec()

    def filter(self) -> "QueryFeatures":
        for key, value in self.params.items():
            if key in RESERVED_KEYS:
                continue

            match = _BRACKETED_KEY.match(key)
            if match and match.group("operator") in COMPARISON_OPERATORS:
                operator = COMPARISON_OPERATORS[match.group("operator")]
                self.spec.filters.append(FilterExpression(match.group("field"), operator, _last(value)))
            elif isinstance(value, list):
                self.spec.filters.append(FilterExpression(key, FilterOperator.IN, list(value)))
            else:
                # Unknown bracketed operators stay part of the field name.
                self.spec.filters.append(FilterExpression(key, FilterOperator.EQ, value))
        return self

    def sort(self) -> "QueryFeatures":
        fields = _split_csv(self.params.get("sort") or DEFAULT_SORT)
        self.spec.sort = [
            SortKey(name[1:], descending=True) if name.startswith("-") else SortKey(name)
            for name in fields
            if name.lstrip("-")
        ]
        return self

    def limit_fields(self) -> "QueryFeatures":
        requested = self.params.get("fields")
        if not requested:
            self.spec.exclude_fields = list(DEFAULT_EXCLUDED_FIELDS)
            return self

        for name in _split_csv(requested):
            if name.startswith("-"):
                self.spec.exclude_fields.append(name[1:])
            else:
                self.spec.include_fields.append(name)
        return self

    def paginate(self) -> "QueryFeatures":
        page = _positive_int("page", self.params.get("page"), 1)
        limit = min(_positive_int("limit", self.params.get("limit"), config.DEFAULT_PAGE_LIMIT), config.MAX_PAGE_LIMIT)
        skip = (page - 1) * limit
        if skip > MAX_OFFSET:
            raise ValidationError(f"Invalid page: {page}. It is out of range.")
        self.spec.skip = skip
        self.spec.limit = limit
        return self


def build_query_spec(params: Mapping[str, Any] | Iterable[tuple[str, str]]) -> QuerySpec:
    return QueryFeatures(params).filter().sort().limit_fields().paginate().spec
