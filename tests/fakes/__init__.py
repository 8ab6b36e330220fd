"""Shared Fake adapters for testing without unittest.mock.

All Fake implementations follow the Port DI adapter pattern:
real Python classes with preset return values, no AsyncMock/MagicMock.
"""

from tests.fakes.session import (
    FakeAsyncSession,
    FakeMappingResult,
    FakeResult,
    FakeSessionFactory,
)
from tests.fakes.tenants import (
    JWT_SECRET,
    WEBHOOK_SECRET,
    bearer,
    seed_organization,
    seed_user,
)

__all__ = [
    "JWT_SECRET",
    "WEBHOOK_SECRET",
    "FakeAsyncSession",
    "FakeMappingResult",
    "FakeResult",
    "FakeSessionFactory",
    "bearer",
    "seed_organization",
    "seed_user",
]
