"""Tests for async DB engine and session factory."""

from __future__ import annotations

import pytest

from src.infra.db import create_db_engine, create_session_factory, normalize_database_url


@pytest.mark.unit
class TestNormalizeDatabaseUrl:
    @pytest.mark.parametrize(
        ("url", "expected"),
        [
            ("postgres://u:p@db/x", "postgresql+asyncpg://u:p@db/x"),
            ("postgresql://u:p@db/x", "postgresql+asyncpg://u:p@db/x"),
            ("postgresql+asyncpg://u:p@db/x", "postgresql+asyncpg://u:p@db/x"),
        ],
    )
    def test_rewrites_sync_schemes(self, url: str, expected: str) -> None:
        assert normalize_database_url(url) == expected


@pytest.mark.unit
class TestCreateDbEngine:
    """Verify engine factory produces an async engine."""

    def test_returns_async_engine(self) -> None:
        engine = create_db_engine("postgres://u:p@localhost/test")
        assert hasattr(engine, "begin")
        assert hasattr(engine, "dispose")
        assert "asyncpg" in str(engine.url)

    def test_pool_size_configurable(self) -> None:
        engine = create_db_engine(
            "postgresql+asyncpg://u:p@localhost/test",
            pool_size=5,
            max_overflow=10,
        )
        assert engine.pool.size() == 5

    def test_echo_defaults_to_false(self) -> None:
        engine = create_db_engine("postgresql+asyncpg://u:p@localhost/test")
        assert engine.echo is False


@pytest.mark.unit
class TestCreateSessionFactory:
    def test_session_expire_on_commit_false(self) -> None:
        engine = create_db_engine("postgresql+asyncpg://u:p@localhost/test")
        factory = create_session_factory(engine)
        assert callable(factory)
        assert factory.kw["expire_on_commit"] is False
