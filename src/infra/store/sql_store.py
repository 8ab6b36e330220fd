"""PostgreSQL RecordStorePort via SQLAlchemy Core.

- One session per call, one statement, committed immediately
- Statements are built from the tables in ``src.infra.models``
- Driver errors are translated to StoreError carrying the SQLSTATE, so
  the gateway can map them without knowing about SQLAlchemy
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import exc as sa_exc

from src.infra.store.schema import (
    check_columns,
    coerce_value,
    get_table,
    is_valid_key,
    primary_key_column,
)
from src.ports.record_store import RecordStorePort
from src.shared.errors import StoreError, StoreErrorCode
from src.shared.types import FilterOperator, SortDirection

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from src.shared.types import FilterClause, QuerySpec

logger = logging.getLogger(__name__)

_CONNECTION_SQLSTATE_CLASS = "08"


class SqlRecordStore(RecordStorePort):
    """Async SQLAlchemy implementation of RecordStorePort."""

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def select(
        self,
        table: str,
        query: QuerySpec,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        stmt = build_select(get_table(table), query, scope=scope)
        return await self._execute(stmt, commit=False)

    async def get(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        tbl = get_table(table)
        stmt = sa.select(tbl).where(*_key_conditions(tbl, record_id, scope))
        rows = await self._execute(stmt, commit=False)
        return _single(tbl, record_id, rows)

    async def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        tbl = get_table(table)
        check_columns(tbl, record.keys())
        stmt = sa.insert(tbl).values(dict(record)).returning(*tbl.columns)
        rows = await self._execute(stmt, commit=True)
        return rows[0]

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
        stmt = (
            sa.update(tbl)
            .where(*_key_conditions(tbl, record_id, scope))
            .values(dict(changes))
            .returning(*tbl.columns)
        )
        rows = await self._execute(stmt, commit=True)
        return _single(tbl, record_id, rows)

    async def delete(
        self,
        table: str,
        record_id: str,
        *,
        scope: Mapping[str, Any] | None = None,
    ) -> None:
        tbl = get_table(table)
        pk = primary_key_column(tbl)
        stmt = sa.delete(tbl).where(*_key_conditions(tbl, record_id, scope)).returning(pk)
        rows = await self._execute(stmt, commit=True)
        _single(tbl, record_id, rows)

    async def _execute(self, stmt: sa.Executable, *, commit: bool) -> list[dict[str, Any]]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = [dict(row) for row in result.mappings().all()]
                if commit:
                    await session.commit()
        except sa_exc.DBAPIError as exc:
            raise to_store_error(exc) from exc
        except OSError as exc:
            raise StoreError(StoreErrorCode.CONNECTION, str(exc)) from exc
        return rows


def build_select(
    table: sa.Table,
    query: QuerySpec,
    *,
    scope: Mapping[str, Any] | None = None,
) -> sa.Select[Any]:
    """Translate a QuerySpec into a SELECT on ``table``."""
    stmt = sa.select(table).where(*_scope_conditions(table, scope))
    for clause in query.predicates:
        stmt = stmt.where(_condition(table, clause))
    for clause in query.ordering:
        check_columns(table, [clause.field])
        column = table.c[clause.field]
        desc = clause.value == SortDirection.DESC.value
        stmt = stmt.order_by(column.desc() if desc else column.asc())
    return stmt.limit(query.pagination.limit).offset(query.pagination.offset)


def _condition(table: sa.Table, clause: FilterClause) -> sa.ColumnElement[bool]:
    check_columns(table, [clause.field])
    column = table.c[clause.field]
    if clause.operator is FilterOperator.IN:
        return column.in_([coerce_value(column, v) for v in clause.value])
    assert isinstance(clause.value, str)
    value = coerce_value(column, clause.value)
    if clause.operator is FilterOperator.EQ:
        return column == value
    if clause.operator is FilterOperator.GTE:
        return column >= value
    if clause.operator is FilterOperator.LTE:
        return column <= value
    msg = f"Unsupported filter operator: {clause.operator}"
    raise ValueError(msg)


def _scope_conditions(
    table: sa.Table,
    scope: Mapping[str, Any] | None,
) -> list[sa.ColumnElement[bool]]:
    if not scope:
        return []
    check_columns(table, scope.keys())
    conditions: list[sa.ColumnElement[bool]] = []
    for name, value in scope.items():
        column = table.c[name]
        if isinstance(value, str) and not is_valid_key(column, value):
            conditions.append(sa.false())
        else:
            conditions.append(column == value)
    return conditions


def _key_conditions(
    table: sa.Table,
    record_id: str,
    scope: Mapping[str, Any] | None,
) -> list[sa.ColumnElement[bool]]:
    pk = primary_key_column(table)
    if not is_valid_key(pk, record_id):
        # Malformed UUID text would fail in Postgres with 22P02.
        raise StoreError(StoreErrorCode.NO_ROWS, f"No {table.name} row with id {record_id}")
    return [pk == coerce_value(pk, record_id), *_scope_conditions(table, scope)]


def _single(table: sa.Table, record_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    if not rows:
        raise StoreError(StoreErrorCode.NO_ROWS, f"No {table.name} row with id {record_id}")
    return rows[0]


def _sqlstate(orig: BaseException | None) -> str:
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if isinstance(code, str) and code:
            return code
    return ""


def to_store_error(exc: sa_exc.DBAPIError) -> StoreError:
    """Translate a SQLAlchemy DBAPIError into a StoreError."""
    detail = str(exc.orig) if exc.orig is not None else str(exc)
    sqlstate = _sqlstate(exc.orig)
    if (
        isinstance(exc, sa_exc.OperationalError | sa_exc.InterfaceError)
        or exc.connection_invalidated
        or sqlstate.startswith(_CONNECTION_SQLSTATE_CLASS)
    ):
        return StoreError(StoreErrorCode.CONNECTION, detail)
    logger.debug("Store statement failed with SQLSTATE %s", sqlstate or "<none>")
    return StoreError(sqlstate or StoreErrorCode.UNKNOWN, detail)
