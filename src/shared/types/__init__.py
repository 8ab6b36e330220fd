"""Shared domain types used across layers.

These types flow through Port interfaces and must remain stable:
- UserContext: the per-request caller identity, passed explicitly to every
  handler and operation (never stored in module state)
- FilterClause / Pagination / QuerySpec: the store-agnostic description of
  a read query, produced by the query filter builder and interpreted by
  each RecordStorePort implementation
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique

# -- Caller identity --


@unique
class OrganizationRole(Enum):
    """Role of a user inside their organization."""

    ADMIN = "admin"
    EMPLOYEE = "employee"


@dataclass(frozen=True)
class UserContext:
    """Resolved caller identity for a single request."""

    user_id: str
    organization_id: str
    organization_role: OrganizationRole
    is_active: bool = True
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.organization_role is OrganizationRole.ADMIN


# -- Query description --


@unique
class FilterOperator(Enum):
    """Operators a FilterClause may carry."""

    EQ = "eq"
    IN = "in"
    GTE = "gte"
    LTE = "lte"
    ORDER = "order"


@unique
class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class FilterClause:
    """One filter or ordering step.

    ``value`` is a tuple for IN, a SortDirection value ("asc"/"desc") for
    ORDER, and the raw query-string value otherwise.
    """

    field: str
    operator: FilterOperator
    value: str | tuple[str, ...]


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int = 0


@dataclass(frozen=True)
class QuerySpec:
    """Ordered filters plus pagination bounds for one read."""

    filters: tuple[FilterClause, ...] = ()
    pagination: Pagination = field(default_factory=lambda: Pagination(limit=50))

    @property
    def predicates(self) -> tuple[FilterClause, ...]:
        """Filters that restrict rows (everything except ORDER)."""
        return tuple(c for c in self.filters if c.operator is not FilterOperator.ORDER)

    @property
    def ordering(self) -> tuple[FilterClause, ...]:
        return tuple(c for c in self.filters if c.operator is FilterOperator.ORDER)


__all__ = [
    "FilterClause",
    "FilterOperator",
    "OrganizationRole",
    "Pagination",
    "QuerySpec",
    "SortDirection",
    "UserContext",
]
