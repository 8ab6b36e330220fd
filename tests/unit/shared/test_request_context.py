"""Tests for request id propagation via contextvars."""

from __future__ import annotations

import asyncio
from uuid import UUID

import pytest

from src.shared.request_context import get_request_id, request_scope


@pytest.mark.unit
class TestRequestScope:
    def test_empty_outside_scope(self) -> None:
        assert get_request_id() == ""

    def test_uses_given_id(self) -> None:
        with request_scope("req-123") as request_id:
            assert request_id == "req-123"
            assert get_request_id() == "req-123"
        assert get_request_id() == ""

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_generates_uuid4_when_blank(self, raw: str | None) -> None:
        with request_scope(raw) as request_id:
            assert UUID(request_id).version == 4

    def test_nested_scopes_restore_previous(self) -> None:
        with request_scope("outer"):
            with request_scope("inner"):
                assert get_request_id() == "inner"
            assert get_request_id() == "outer"

    async def test_concurrent_tasks_are_isolated(self) -> None:
        async def worker(request_id: str) -> str:
            with request_scope(request_id):
                await asyncio.sleep(0)
                return get_request_id()

        results = await asyncio.gather(worker("a"), worker("b"), worker("c"))
        assert results == ["a", "b", "c"]
