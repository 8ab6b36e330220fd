"""snake_case <-> camelCase reshaping between store rows and JSON bodies.

Only top-level keys are converted in either direction. Nested values
(metadata, cascade settings, template schemas) are free-form client JSON
and round-trip untouched.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def to_snake(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def camelize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    return {to_camel(key): value for key, value in row.items()}


def camelize_rows(rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    return [camelize_row(row) for row in rows]
