"""Root conftest - shared fixtures for all test layers.

Markers:
    @pytest.mark.unit   - No external deps
    @pytest.mark.smoke  - End-to-end through the ASGI app
    @pytest.mark.integration - Composition root wiring (no live services)

Every test class carries one of these; collection fails otherwise.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient

from src.gateway.app import create_app
from src.infra.store import InMemoryRecordStore
from src.shared.types import OrganizationRole, UserContext
from tests.fakes import JWT_SECRET, WEBHOOK_SECRET

LAYER_MARKERS = frozenset({"unit", "smoke", "integration"})


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    unmarked = [
        item.nodeid
        for item in items
        if not LAYER_MARKERS & {marker.name for marker in item.iter_markers()}
    ]
    if unmarked:
        msg = f"Tests without a layer marker (unit, smoke, integration): {unmarked}"
        raise pytest.UsageError(msg)


@pytest.fixture
def store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


@pytest.fixture
def app(store: InMemoryRecordStore):
    return create_app(
        store=store,
        jwt_secret=JWT_SECRET,
        cors_origins=["http://localhost:3000"],
        webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
async def client(app) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def employee_context() -> UserContext:
    return UserContext(
        user_id="user_employee",
        organization_id="42",
        organization_role=OrganizationRole.EMPLOYEE,
        email="employee@example.test",
    )


@pytest.fixture
def admin_context() -> UserContext:
    return UserContext(
        user_id="user_admin",
        organization_id="42",
        organization_role=OrganizationRole.ADMIN,
        email="admin@example.test",
    )
