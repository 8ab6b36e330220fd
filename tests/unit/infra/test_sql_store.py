"""Tests for SqlRecordStore: statement building and driver error mapping.

Uses the fake session from tests.fakes; no database is needed.
"""

from __future__ import annotations

import pytest
from sqlalchemy import exc as sa_exc
from sqlalchemy.dialects import postgresql

from src.infra.store import SqlRecordStore
from src.infra.store.schema import get_table
from src.infra.store.sql_store import build_select, to_store_error
from src.shared.errors import StoreError, StoreErrorCode, ValidationError
from src.shared.query_filter import build_query_spec
from src.shared.types import QuerySpec
from tests.fakes import FakeAsyncSession, FakeSessionFactory

ORG_ID = "0b7c3f5e-8d1a-4c2b-9e6f-1a2b3c4d5e6f"
PRODUCT_ID = "6f1e2d3c-4b5a-4978-8a6b-5c4d3e2f1a0b"


class FakeDriverError(Exception):
    """Driver exception carrying a SQLSTATE like asyncpg's."""

    def __init__(self, message: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


@pytest.fixture
def session() -> FakeAsyncSession:
    return FakeAsyncSession()


@pytest.fixture
def sql_store(session: FakeAsyncSession) -> SqlRecordStore:
    return SqlRecordStore(session_factory=FakeSessionFactory(session))


@pytest.mark.unit
class TestBuildSelect:
    def test_scope_filters_order_and_pagination(self) -> None:
        params = {
            "status": "active",
            "type_in": "component,final_product",
            "sort": "name:desc",
            "limit": "10",
            "offset": "20",
        }
        query = build_query_spec(params, ("status", "type", "name"))
        stmt = build_select(get_table("products"), query, scope={"organization_id": ORG_ID})
        sql = _sql(stmt)
        assert "products.organization_id =" in sql
        assert "products.status =" in sql
        assert "products.type IN" in sql
        assert "ORDER BY products.name DESC" in sql
        assert "LIMIT" in sql
        assert "OFFSET" in sql
        bound = stmt.compile(dialect=postgresql.dialect()).params
        assert ORG_ID in bound.values()
        assert "active" in bound.values()

    def test_range_values_are_coerced(self) -> None:
        query = build_query_spec({"created_at_gte": "2024-01-01T00:00:00Z"}, ("created_at",))
        stmt = build_select(get_table("products"), query)
        assert "products.created_at >=" in _sql(stmt)

    def test_invalid_value_raises_validation_error(self) -> None:
        query = build_query_spec({"quantity": "lots"}, ("quantity",))
        with pytest.raises(ValidationError):
            build_select(get_table("products"), query)

    def test_malformed_uuid_scope_matches_nothing(self) -> None:
        stmt = build_select(
            get_table("users"), QuerySpec(), scope={"organization_id": "not-a-uuid"}
        )
        assert "false" in _sql(stmt).lower()


@pytest.mark.unit
class TestSqlRecordStore:
    async def test_select_returns_plain_dicts_without_commit(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_result(rows=[{"id": PRODUCT_ID, "name": "Widget"}])
        rows = await sql_store.select("products", QuerySpec(), scope={"organization_id": ORG_ID})
        assert rows == [{"id": PRODUCT_ID, "name": "Widget"}]
        assert session.commit_count == 0
        assert len(session.execute_calls) == 1

    async def test_insert_commits_and_returns_row(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_result(rows=[{"id": PRODUCT_ID, "name": "Widget"}])
        row = await sql_store.insert("products", {"name": "Widget", "organization_id": ORG_ID})
        assert row["id"] == PRODUCT_ID
        assert session.commit_count == 1
        statement, _ = session.execute_calls[0]
        assert "RETURNING" in _sql(statement)

    async def test_insert_unknown_column_fails_before_execute(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        with pytest.raises(StoreError) as exc_info:
            await sql_store.insert("products", {"colour": "red"})
        assert exc_info.value.store_code == StoreErrorCode.UNKNOWN
        assert session.execute_calls == []

    async def test_get_without_rows_is_no_rows(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_result(rows=[])
        with pytest.raises(StoreError) as exc_info:
            await sql_store.get("products", PRODUCT_ID, scope={"organization_id": ORG_ID})
        assert exc_info.value.store_code == StoreErrorCode.NO_ROWS

    async def test_get_malformed_uuid_skips_database(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        with pytest.raises(StoreError) as exc_info:
            await sql_store.get("products", "not-a-uuid")
        assert exc_info.value.store_code == StoreErrorCode.NO_ROWS
        assert session.execute_calls == []

    async def test_update_and_delete(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_result(rows=[{"id": PRODUCT_ID, "name": "Gadget"}])
        row = await sql_store.update("products", PRODUCT_ID, {"name": "Gadget"})
        assert row["name"] == "Gadget"
        await sql_store.delete("products", PRODUCT_ID, scope={"organization_id": ORG_ID})
        assert session.commit_count == 2

    async def test_delete_missing_row(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_result(rows=[])
        with pytest.raises(StoreError) as exc_info:
            await sql_store.delete("products", PRODUCT_ID)
        assert exc_info.value.store_code == StoreErrorCode.NO_ROWS

    async def test_integrity_error_carries_sqlstate(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        orig = FakeDriverError('duplicate key value violates "products_pkey"', sqlstate="23505")
        session.set_execute_error(sa_exc.IntegrityError("INSERT", {}, orig))
        with pytest.raises(StoreError) as exc_info:
            await sql_store.insert("products", {"name": "Widget"})
        assert exc_info.value.store_code == StoreErrorCode.UNIQUE_VIOLATION
        assert "products_pkey" in exc_info.value.detail

    async def test_os_error_is_connection_error(
        self, sql_store: SqlRecordStore, session: FakeAsyncSession
    ) -> None:
        session.set_execute_error(ConnectionRefusedError("connection refused"))
        with pytest.raises(StoreError) as exc_info:
            await sql_store.select("products", QuerySpec())
        assert exc_info.value.store_code == StoreErrorCode.CONNECTION


@pytest.mark.unit
class TestToStoreError:
    def test_operational_error_is_connection(self) -> None:
        err = sa_exc.OperationalError("SELECT 1", {}, FakeDriverError("server closed"))
        assert to_store_error(err).store_code == StoreErrorCode.CONNECTION

    def test_connection_sqlstate_class(self) -> None:
        err = sa_exc.DBAPIError("SELECT 1", {}, FakeDriverError("gone", sqlstate="08006"))
        assert to_store_error(err).store_code == StoreErrorCode.CONNECTION

    def test_sqlstate_read_from_cause(self) -> None:
        cause = FakeDriverError("fk", sqlstate="23503")
        orig = FakeDriverError("wrapped")
        orig.__cause__ = cause
        err = sa_exc.IntegrityError("INSERT", {}, orig)
        assert to_store_error(err).store_code == StoreErrorCode.FOREIGN_KEY_VIOLATION

    def test_unknown_without_sqlstate(self) -> None:
        err = sa_exc.DBAPIError("SELECT 1", {}, FakeDriverError("boom"))
        store_error = to_store_error(err)
        assert store_error.store_code == StoreErrorCode.UNKNOWN
        assert store_error.detail == "boom"
