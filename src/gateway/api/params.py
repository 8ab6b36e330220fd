"""Query-string normalization shared by the list endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.shared.casing import to_snake
from src.shared.query_filter import SORT_PARAM

if TYPE_CHECKING:
    from fastapi import Request


def query_params(request: Request) -> dict[str, str]:
    """Return query parameters keyed by snake_case name.

    The last value wins for repeated names. Field names inside ``sort`` are
    snake-cased too, so ``sort=createdAt:desc`` and ``sort=created_at:desc``
    are equivalent.
    """
    params = {to_snake(key): value for key, value in request.query_params.items()}
    if SORT_PARAM in params:
        keys = []
        for part in params[SORT_PARAM].split(","):
            name, sep, direction = part.partition(":")
            keys.append(to_snake(name.strip()) + sep + direction)
        params[SORT_PARAM] = ",".join(keys)
    return params
