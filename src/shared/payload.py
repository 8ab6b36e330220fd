"""Write-payload preparation: field sanitizing and required-field checks.

sanitize_payload() is the last step before a payload reaches the store.
It never mutates its input and is idempotent, so handlers may call it more
than once on the same data.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from src.shared.types import UserContext

ORGANIZATION_SCOPE_FIELD = "organization_id"


def sanitize_payload(
    payload: Mapping[str, Any],
    allowed_fields: Iterable[str],
    *,
    context: UserContext | None = None,
    scope_field: str | None = ORGANIZATION_SCOPE_FIELD,
) -> dict[str, Any]:
    """Return a copy of ``payload`` that is safe to persist.

    - keys without a value (``None``) are removed
    - keys outside ``allowed_fields`` are removed
    - when ``context`` is given, ``scope_field`` is force-set to the
      caller's organization, whatever the client sent
    """
    allowed = frozenset(allowed_fields)
    sanitized = {
        key: value for key, value in payload.items() if value is not None and key in allowed
    }
    if context is not None and scope_field:
        sanitized[scope_field] = context.organization_id
    return sanitized


def validate_required_fields(payload: Mapping[str, Any], required_fields: Iterable[str]) -> None:
    """Raise ValidationError listing every missing or blank required field."""
    missing = [name for name in required_fields if _is_blank(payload.get(name))]
    if missing:
        raise ValidationError(
            f"Missing required fields: {', '.join(missing)}",
            field=missing[0],
        )


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def apply_defaults(payload: Mapping[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    """Fill absent keys from ``defaults`` (copies mutable default values)."""
    result = dict(payload)
    for key, value in defaults.items():
        if result.get(key) is None:
            result[key] = value.copy() if isinstance(value, dict | list) else value
    return result
