"""Per-request id propagation via contextvars.

The gateway sets a request id on entry (from the ``X-Request-ID`` header or
a fresh UUID4). Store adapters and the error logger read it back so every
log line of one request can be correlated. No other state is kept per
request at module level: caller identity travels as an explicit UserContext.
"""

from __future__ import annotations

from collections.abc import Generator  # noqa: TC003 -- used at runtime by contextmanager
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4

REQUEST_ID_HEADER = "X-Request-ID"

current_request_id: ContextVar[str] = ContextVar("current_request_id", default="")


def get_request_id() -> str:
    """Return the current request id (empty string outside a request)."""
    return current_request_id.get()


@contextmanager
def request_scope(request_id: str | None = None) -> Generator[str, None, None]:
    """Bind a request id for the duration of the ``with`` block.

    A blank or missing id is replaced by a new UUID4. The previous value is
    restored on exit, so nested scopes (tests, background calls) are safe.
    """
    effective_id = (request_id or "").strip() or str(uuid4())
    token = current_request_id.set(effective_id)
    try:
        yield effective_id
    finally:
        current_request_id.reset(token)
