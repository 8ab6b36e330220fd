"""Structured error logging handler.

Store failures and unexpected exceptions are logged server-side with their
raw detail, while the client only ever sees the generic envelope message.

- Error logs contain: error_code, store_code, stack_trace, context
- request_id is taken from the active request scope when not given
- Sensitive context keys are redacted
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import asdict, dataclass, field
from typing import Any

from src.shared.request_context import get_request_id


@dataclass(frozen=True)
class StructuredError:
    """Structured representation of an error for logging."""

    error_code: str
    message: str
    stack_trace: str
    store_code: str = ""
    context: dict[str, Any] = field(default_factory=dict)
    org_id: str = ""
    request_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict suitable for JSON logging."""
        d = asdict(self)
        d["context"] = _redact_sensitive(d["context"])
        return d


_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "token",
        "secret",
        "authorization",
        "cookie",
        "jwt",
        "svix-signature",
        "webhook_secret",
    }
)


def _redact_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Redact values of sensitive keys, recursing into nested dicts."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in _SENSITIVE_KEYS:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = _redact_sensitive(value)
        else:
            result[key] = value
    return result


def create_structured_error(
    exc: BaseException,
    *,
    error_code: str = "",
    org_id: str = "",
    request_id: str = "",
    context: dict[str, Any] | None = None,
) -> StructuredError:
    """Create a StructuredError from an exception.

    A TraceHubError contributes its ``code``; a StoreError additionally
    contributes its ``store_code`` and raw ``detail``.
    """
    code = error_code or getattr(exc, "code", type(exc).__name__)
    stack = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return StructuredError(
        error_code=code,
        message=getattr(exc, "detail", "") or str(exc),
        stack_trace="".join(stack),
        store_code=getattr(exc, "store_code", ""),
        context=context or {},
        org_id=org_id,
        request_id=request_id or get_request_id(),
    )


def log_structured_error(
    logger: logging.Logger,
    exc: BaseException,
    *,
    error_code: str = "",
    org_id: str = "",
    request_id: str = "",
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> StructuredError:
    """Log an exception as a structured error and return it."""
    structured = create_structured_error(
        exc,
        error_code=error_code,
        org_id=org_id,
        request_id=request_id,
        context=context,
    )
    logger.log(
        level,
        "structured_error code=%s store_code=%s",
        structured.error_code,
        structured.store_code or "-",
        extra={"structured_error": structured.to_dict()},
    )
    return structured
