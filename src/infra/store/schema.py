"""Table lookup and value coercion shared by both record stores.

Query-string filter values arrive as text; they are coerced to the column's
Python type here so that both stores compare like with like and reject the
same malformed input.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

from src.infra.models import Base
from src.shared.errors import StoreError, StoreErrorCode, ValidationError
from src.shared.timestamps import utc_now

if TYPE_CHECKING:
    from collections.abc import Iterable

_TRUE_VALUES = frozenset({"true", "t", "1", "yes"})
_FALSE_VALUES = frozenset({"false", "f", "0", "no"})


def get_table(name: str) -> sa.Table:
    """Return the mapped table, or raise StoreError(UNDEFINED_TABLE)."""
    table = Base.metadata.tables.get(name)
    if table is None:
        raise StoreError(StoreErrorCode.UNDEFINED_TABLE, f'relation "{name}" does not exist')
    return table


def primary_key_column(table: sa.Table) -> sa.Column[Any]:
    return next(iter(table.primary_key.columns))


def check_columns(table: sa.Table, names: Iterable[str]) -> None:
    """Raise StoreError(UNKNOWN) for names that are not columns of ``table``."""
    unknown = sorted(set(names) - set(table.c.keys()))
    if unknown:
        raise StoreError(
            StoreErrorCode.UNKNOWN,
            f"Unknown column(s) for {table.name}: {', '.join(unknown)}",
        )


def _python_type(column: sa.Column[Any]) -> type | None:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def parse_datetime(raw: str) -> datetime:
    value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value


def is_valid_key(column: sa.Column[Any], raw: str) -> bool:
    """False when ``raw`` can never match a value of a UUID column."""
    if not isinstance(column.type, sa.Uuid):
        return True
    try:
        uuid.UUID(raw)
    except ValueError:
        return False
    return True


def coerce_value(column: sa.Column[Any], raw: str) -> Any:
    """Convert query-string text to the column's Python type.

    Raises:
        ValidationError: If the text is not a valid value for the column.
    """
    py_type = _python_type(column)
    try:
        if py_type is bool:
            lowered = raw.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(raw)
        if py_type is int:
            return int(raw)
        if py_type is float:
            return float(raw)
        if py_type is datetime:
            return parse_datetime(raw)
        if isinstance(column.type, sa.Uuid):
            return str(uuid.UUID(raw))
    except ValueError as exc:
        raise ValidationError(
            f"Invalid value for {column.name}: {raw!r}",
            field=column.name,
        ) from exc
    return raw


def server_default_value(column: sa.Column[Any]) -> Any:
    """Evaluate a column's server default the way Postgres would.

    Only the literal forms used in ``src.infra.models`` are understood.
    """
    default = column.server_default
    if default is None:
        return None
    arg = getattr(default, "arg", None)
    text = arg if isinstance(arg, str) else str(getattr(arg, "text", arg))
    if text == "now()":
        return utc_now()
    if text == "gen_random_uuid()":
        return str(uuid.uuid4())
    if text == "'{}'::jsonb":
        return {}
    if text == "'{}'":
        return []
    return coerce_value(column, text)
