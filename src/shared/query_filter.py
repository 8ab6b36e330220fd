"""Query-string to QuerySpec translation.

Every list endpoint hands its raw query parameters and a per-entity
allow-list to build_query_spec(). The result is a store-agnostic QuerySpec:

- ``<field>=v``        -> eq
- ``<field>_in=a,b``   -> in
- ``<field>_gte=v``    -> gte
- ``<field>_lte=v``    -> lte
- ``sort=f:asc|desc``  -> order (comma separated, direction defaults to asc)
- ``limit`` / ``offset`` / ``page`` -> pagination

Parameters naming a field outside the allow-list are dropped without an
error, so callers cannot discover hidden filterable columns. Filters are
emitted in allow-list order, never in client order.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.shared.types import (
    FilterClause,
    FilterOperator,
    Pagination,
    QuerySpec,
    SortDirection,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

DEFAULT_LIMIT = 50
MAX_LIMIT = 100

SORT_PARAM = "sort"
LIMIT_PARAM = "limit"
OFFSET_PARAM = "offset"
PAGE_PARAM = "page"
RESERVED_PARAMS = frozenset({SORT_PARAM, LIMIT_PARAM, OFFSET_PARAM, PAGE_PARAM})

_IN_SUFFIX = "_in"
_RANGE_SUFFIXES: tuple[tuple[str, FilterOperator], ...] = (
    ("_gte", FilterOperator.GTE),
    ("_lte", FilterOperator.LTE),
)


def build_query_spec(
    params: Mapping[str, str],
    allowed_fields: Sequence[str],
    *,
    default_sort: str | None = None,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> QuerySpec:
    """Translate query parameters into a QuerySpec.

    Args:
        params: Query-string mapping (one value per name).
        allowed_fields: Filterable and sortable fields for this endpoint.
        default_sort: ``field:direction`` applied when the client sends no
            usable ``sort``. Server configuration, so it is not checked
            against the allow-list.
        default_limit: Page size when ``limit`` is absent or unparsable.
        max_limit: Upper clamp for ``limit``.
    """
    filters: list[FilterClause] = []
    for name in allowed_fields:
        if name in RESERVED_PARAMS:
            continue
        filters.extend(_field_filters(name, params))

    order = _parse_sort(params.get(SORT_PARAM, ""), allowed=frozenset(allowed_fields))
    if not order and default_sort:
        order = _parse_sort(default_sort, allowed=None)
    filters.extend(order)

    return QuerySpec(
        filters=tuple(filters),
        pagination=_parse_pagination(params, default_limit=default_limit, max_limit=max_limit),
    )


def _field_filters(name: str, params: Mapping[str, str]) -> list[FilterClause]:
    clauses: list[FilterClause] = []

    value = params.get(name, "").strip()
    if value:
        clauses.append(FilterClause(name, FilterOperator.EQ, value))

    raw_in = params.get(name + _IN_SUFFIX, "")
    values = tuple(v.strip() for v in raw_in.split(",") if v.strip())
    if values:
        clauses.append(FilterClause(name, FilterOperator.IN, values))

    for suffix, operator in _RANGE_SUFFIXES:
        bound = params.get(name + suffix, "").strip()
        if bound:
            clauses.append(FilterClause(name, operator, bound))

    return clauses


def _parse_sort(raw: str, *, allowed: frozenset[str] | None) -> list[FilterClause]:
    """Parse ``f1:desc,f2`` into ORDER clauses, skipping unknown fields."""
    clauses: list[FilterClause] = []
    seen: set[str] = set()
    for part in raw.split(","):
        name, _, direction = part.strip().partition(":")
        name = name.strip()
        if not name or name in seen:
            continue
        if allowed is not None and name not in allowed:
            continue
        try:
            parsed = SortDirection(direction.strip().lower() or SortDirection.ASC.value)
        except ValueError:
            parsed = SortDirection.ASC
        seen.add(name)
        clauses.append(FilterClause(name, FilterOperator.ORDER, parsed.value))
    return clauses


def _parse_int(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def _parse_pagination(
    params: Mapping[str, str],
    *,
    default_limit: int,
    max_limit: int,
) -> Pagination:
    limit = _parse_int(params.get(LIMIT_PARAM))
    if limit is None:
        limit = default_limit
    limit = max(1, min(limit, max_limit))

    offset = _parse_int(params.get(OFFSET_PARAM))
    if offset is None:
        page = _parse_int(params.get(PAGE_PARAM))
        offset = (page - 1) * limit if page and page > 1 else 0

    return Pagination(limit=limit, offset=max(0, offset))
