"""Creation / update timestamp stamping for write payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"


def utc_now() -> datetime:
    return datetime.now(UTC)


def add_create_timestamps(
    record: Mapping[str, Any],
    *,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Return a copy with created_at and updated_at set to one clock read."""
    now = clock()
    return {**record, CREATED_AT: now, UPDATED_AT: now}


def add_update_timestamps(
    record: Mapping[str, Any],
    *,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Return a copy with only updated_at refreshed."""
    return {**record, UPDATED_AT: clock()}
