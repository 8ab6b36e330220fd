"""RecordStorePort - Relational record persistence interface.

Every endpoint reaches the database through this port. Each call is a
single statement; there are no transactions spanning calls and no retries.

Implementations:
  - SqlRecordStore (SQLAlchemy async + asyncpg) for production
  - InMemoryRecordStore for development and tests

Rows travel as plain dicts keyed by snake_case column name.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from src.shared.types import QuerySpec


class RecordStorePort(ABC):
    """Port: table-oriented CRUD over plain dict rows."""

    @abstractmethod
    async def select(
        self,
        table: str,
        query: QuerySpec,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return rows matching ``query``.

        Args:
            table: Table name.
            query: Filters, ordering and pagination.
            scope: Column equality constraints applied before the query
                filters (tenant scoping). Never derived from client input.

        Raises:
            ValidationError: If a filter value cannot be coerced to the
                column type.
            StoreError: On any store failure.
        """

    @abstractmethod
    async def get(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Fetch one row by primary key.

        Raises:
            StoreError: ``NO_ROWS`` if the row does not exist or lies
                outside ``scope``.
        """

    @abstractmethod
    async def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored (with generated id).

        Raises:
            StoreError: e.g. ``UNIQUE_VIOLATION`` or ``NOT_NULL_VIOLATION``.
        """

    @abstractmethod
    async def update(
        self,
        table: str,
        record_id: str,
        changes: Mapping[str, Any],
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Apply ``changes`` to one row and return the updated row.

        Raises:
            StoreError: ``NO_ROWS`` if no row matched id and scope.
        """

    @abstractmethod
    async def delete(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> None:
        """Delete one row.

        Raises:
            StoreError: ``NO_ROWS`` if no row matched id and scope.
        """
