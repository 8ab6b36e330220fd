"""Uniform JSON response envelope.

Every response body, success or failure, has the shape::

    {"success": true,  "data": ...,  "statusCode": 200}
    {"success": false, "error": "...", "statusCode": 404}

Exactly one of ``data`` / ``error`` is present.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from src.shared.errors import StoreError, StoreErrorCode
from src.shared.logging.error_handler import log_structured_error

logger = logging.getLogger(__name__)

GENERIC_DATABASE_ERROR = "Database operation failed"

# store code -> (HTTP status, client-facing message)
_STORE_ERROR_RESPONSES: dict[str, tuple[int, str]] = {
    StoreErrorCode.NO_ROWS: (404, "Resource not found"),
    StoreErrorCode.UNIQUE_VIOLATION: (409, "Resource already exists"),
    StoreErrorCode.FOREIGN_KEY_VIOLATION: (400, "Referenced resource does not exist"),
    StoreErrorCode.NOT_NULL_VIOLATION: (400, "Required field is missing"),
    StoreErrorCode.CONNECTION: (503, "Database unavailable"),
}


class ResponseEnvelope(BaseModel):
    success: bool
    data: Any = None
    error: str | None = None
    status_code: int = Field(serialization_alias="statusCode", ge=100, le=599)

    @model_validator(mode="after")
    def _exactly_one_payload(self) -> ResponseEnvelope:
        if self.success and self.error is not None:
            msg = "successful envelope cannot carry an error"
            raise ValueError(msg)
        if not self.success and self.error is None:
            msg = "failed envelope requires an error message"
            raise ValueError(msg)
        return self

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.success:
            body["data"] = jsonable_encoder(self.data)
        else:
            body["error"] = self.error
        body["statusCode"] = self.status_code
        return body

    def to_response(self, *, headers: dict[str, str] | None = None) -> JSONResponse:
        return JSONResponse(status_code=self.status_code, content=self.to_body(), headers=headers)


def create_success_response(data: Any, status_code: int = 200) -> JSONResponse:
    return ResponseEnvelope(success=True, data=data, status_code=status_code).to_response()


def create_error_response(
    message: str,
    status_code: int = 500,
    *,
    extra: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build an error envelope. ``extra`` adds top-level flags (e.g. needsOnboarding)."""
    envelope = ResponseEnvelope(success=False, error=message, status_code=status_code)
    body = envelope.to_body()
    if extra:
        body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def handle_database_error(err: BaseException, *, org_id: str = "") -> JSONResponse:
    """Map a store failure to an error envelope.

    The raw store detail is logged as a structured error and never
    returned to the client.
    """
    store_code = err.store_code if isinstance(err, StoreError) else ""
    status_code, message = _STORE_ERROR_RESPONSES.get(store_code, (500, GENERIC_DATABASE_ERROR))
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    log_structured_error(logger, err, org_id=org_id, level=level)
    return create_error_response(message, status_code)
