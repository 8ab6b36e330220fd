"""Write-record preparation for org-scoped entities.

Ties the entity catalogue to the payload helpers: required-field checks,
defaults, allow-list sanitizing, scope and creator injection, timestamps.
Pure functions; the caller performs the single store call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.shared.errors import ValidationError
from src.shared.payload import apply_defaults, sanitize_payload, validate_required_fields
from src.shared.timestamps import add_create_timestamps, add_update_timestamps, utc_now

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime

    from src.domain.registry import EntitySchema
    from src.shared.types import UserContext


def prepare_create(
    schema: EntitySchema,
    payload: Mapping[str, Any],
    context: UserContext,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Build the record to insert for ``schema`` on behalf of ``context``."""
    validate_required_fields(payload, schema.required)
    record = apply_defaults(payload, schema.defaults)
    record = sanitize_payload(
        record,
        schema.writable,
        context=context,
        scope_field=schema.scope_field,
    )
    if schema.creator_field:
        record[schema.creator_field] = context.user_id
    return add_create_timestamps(record, clock=clock)


def prepare_update(
    schema: EntitySchema,
    payload: Mapping[str, Any],
    *,
    immutable: Iterable[str] = (),
    clock: Callable[[], datetime] = utc_now,
) -> dict[str, Any]:
    """Build the change set for an update.

    The scope field, the creator field and ``immutable`` columns are never
    updatable, so a row cannot be moved to another organization.

    Raises:
        ValidationError: If nothing updatable remains.
    """
    changes = sanitize_payload(payload, schema.writable, scope_field=None)
    for name in (schema.scope_field, schema.creator_field, *immutable):
        if name:
            changes.pop(name, None)
    for name in schema.required:
        value = changes.get(name)
        if isinstance(value, str) and not value.strip():
            raise ValidationError(f"Field cannot be blank: {name}", field=name)
    if not changes:
        raise ValidationError("No updatable fields provided")
    return add_update_timestamps(changes, clock=clock)
