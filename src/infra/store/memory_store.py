"""In-memory RecordStorePort for development and tests.

Tables are dicts of rows keyed by primary key. Table definitions come from
``src.infra.models`` so the constraints Postgres enforces (primary key,
unique, foreign key, NOT NULL) fail here with the same store codes.
QuerySpec semantics match SqlRecordStore, including NULL ordering
(NULLS LAST ascending, NULLS FIRST descending).
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from src.infra.store.schema import (
    check_columns,
    coerce_value,
    get_table,
    is_valid_key,
    primary_key_column,
    server_default_value,
)
from src.ports.record_store import RecordStorePort
from src.shared.errors import StoreError, StoreErrorCode
from src.shared.types import FilterOperator, SortDirection

if TYPE_CHECKING:
    from collections.abc import Mapping

    import sqlalchemy as sa

    from src.shared.types import FilterClause, QuerySpec

logger = logging.getLogger(__name__)


class InMemoryRecordStore(RecordStorePort):
    """Dict-backed record store. Not shared across processes."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}

    def _rows(self, table: sa.Table) -> dict[str, dict[str, Any]]:
        return self._tables.setdefault(table.name, {})

    # -- RecordStorePort --

    async def select(
        self,
        table: str,
        query: QuerySpec,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        tbl = get_table(table)
        predicates = [_compile_predicate(tbl, clause) for clause in query.predicates]
        rows = [
            row
            for row in self._rows(tbl).values()
            if _in_scope(row, scope) and all(p(row) for p in predicates)
        ]

        # Stable sorts applied last key first give multi-key ordering.
        for clause in reversed(query.ordering):
            check_columns(tbl, [clause.field])
            descending = clause.value == SortDirection.DESC.value
            rows.sort(key=_sort_key(clause.field), reverse=descending)

        start = query.pagination.offset
        page = rows[start : start + query.pagination.limit]
        return [copy.deepcopy(row) for row in page]

    async def get(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        tbl = get_table(table)
        return copy.deepcopy(self._find(tbl, record_id, scope))

    async def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        tbl = get_table(table)
        check_columns(tbl, record.keys())

        row: dict[str, Any] = {}
        for column in tbl.columns:
            if column.name in record:
                row[column.name] = copy.deepcopy(record[column.name])
            else:
                row[column.name] = server_default_value(column)

        pk = primary_key_column(tbl)
        if row[pk.name] is None:
            row[pk.name] = str(uuid4())

        self._check_constraints(tbl, row, exclude_key=None)
        self._rows(tbl)[str(row[pk.name])] = row
        logger.debug("Inserted %s row %s", tbl.name, row[pk.name])
        return copy.deepcopy(row)

    async def update(
        self,
        table: str,
        record_id: str,
        changes: Mapping[str, Any],
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        tbl = get_table(table)
        check_columns(tbl, changes.keys())
        current = self._find(tbl, record_id, scope)

        pk = primary_key_column(tbl)
        updated = {**current, **copy.deepcopy(dict(changes))}
        self._check_constraints(tbl, updated, exclude_key=str(current[pk.name]))

        rows = self._rows(tbl)
        del rows[str(current[pk.name])]
        rows[str(updated[pk.name])] = updated
        return copy.deepcopy(updated)

    async def delete(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> None:
        tbl = get_table(table)
        current = self._find(tbl, record_id, scope)
        pk = primary_key_column(tbl)
        del self._rows(tbl)[str(current[pk.name])]

    # -- Internals --

    def _find(
        self,
        table: sa.Table,
        record_id: str,
        scope: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        pk = primary_key_column(table)
        row = None
        if is_valid_key(pk, record_id):
            row = self._rows(table).get(str(coerce_value(pk, record_id)))
        if row is None or not _in_scope(row, scope):
            raise StoreError(StoreErrorCode.NO_ROWS, f"No {table.name} row with id {record_id}")
        return row

    def _check_constraints(
        self,
        table: sa.Table,
        row: Mapping[str, Any],
        *,
        exclude_key: str | None,
    ) -> None:
        pk = primary_key_column(table)
        others = [r for key, r in self._rows(table).items() if key != exclude_key]

        for column in table.columns:
            value = row.get(column.name)
            if value is None:
                if not column.nullable:
                    raise StoreError(
                        StoreErrorCode.NOT_NULL_VIOLATION,
                        f'null value in column "{column.name}" of relation "{table.name}"',
                    )
                continue
            if (column is pk or column.unique) and any(r.get(column.name) == value for r in others):
                raise StoreError(
                    StoreErrorCode.UNIQUE_VIOLATION,
                    f'duplicate key value violates unique constraint "{table.name}.{column.name}"',
                )
            for fk in column.foreign_keys:
                target = fk.column
                target_rows = self._tables.get(target.table.name, {}).values()
                if target.table.name == table.name:
                    target_rows = [*target_rows, row]
                if not any(r.get(target.name) == value for r in target_rows):
                    raise StoreError(
                        StoreErrorCode.FOREIGN_KEY_VIOLATION,
                        f'insert or update on "{table.name}" violates foreign key "{column.name}"',
                    )


def _in_scope(row: Mapping[str, Any], scope: Mapping[str, Any] | None) -> bool:
    if not scope:
        return True
    return all(row.get(name) == value for name, value in scope.items())


def _compile_predicate(table: sa.Table, clause: FilterClause) -> Any:
    check_columns(table, [clause.field])
    column = table.c[clause.field]
    name = clause.field

    if clause.operator is FilterOperator.IN:
        values = [coerce_value(column, v) for v in clause.value]
        return lambda row: row.get(name) is not None and row.get(name) in values

    assert isinstance(clause.value, str)
    value = coerce_value(column, clause.value)
    if clause.operator is FilterOperator.EQ:
        return lambda row: row.get(name) is not None and row.get(name) == value
    if clause.operator is FilterOperator.GTE:
        return lambda row: row.get(name) is not None and row.get(name) >= value
    if clause.operator is FilterOperator.LTE:
        return lambda row: row.get(name) is not None and row.get(name) <= value
    msg = f"Unsupported filter operator: {clause.operator}"
    raise ValueError(msg)


def _sort_key(name: str) -> Any:
    # NULL sorts as the largest value: last ascending, first descending.
    def key(row: Mapping[str, Any]) -> tuple[bool, Any]:
        value = row.get(name)
        return (value is None, value)

    return key
