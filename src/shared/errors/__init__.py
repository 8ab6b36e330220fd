"""Unified error hierarchy for the Traceability Hub API.

All domain errors inherit from TraceHubError. Each error carries a stable
machine code and the HTTP status the gateway maps it to, so route handlers
raise and never build error responses by hand.
"""

from __future__ import annotations


class TraceHubError(Exception):
    """Base error for all Traceability Hub exceptions."""

    status_code: int = 500

    def __init__(self, message: str, code: str = "TRACEHUB_ERROR") -> None:
        self.code = code
        super().__init__(message)


# -- Input errors --


class ValidationError(TraceHubError):
    """Input validation failed (missing required field, bad value)."""

    status_code = 400

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message, code="VALIDATION")


# -- Auth / Org errors --


class AuthenticationError(TraceHubError):
    """No verified caller identity (missing, invalid or expired token)."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, code="AUTH_FAILED")


class AuthorizationError(TraceHubError):
    """Authorization denied (wrong organization, insufficient role, inactive)."""

    status_code = 403

    def __init__(self, message: str = "Permission denied", code: str = "AUTH_DENIED") -> None:
        super().__init__(message, code=code)


class OrgIsolationError(AuthorizationError):
    """Caller tried to reach another organization's data."""

    def __init__(
        self,
        message: str = "Access denied: user does not belong to this organization",
    ) -> None:
        super().__init__(message, code="ORG_ISOLATION")


class OnboardingRequiredError(AuthorizationError):
    """Verified identity without a persisted user record."""

    def __init__(self, identity_id: str = "") -> None:
        self.identity_id = identity_id
        super().__init__("User has not completed onboarding", code="NEEDS_ONBOARDING")


# -- Domain errors --


class NotFoundError(TraceHubError):
    """Requested resource not found (or not visible to the caller)."""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str = "") -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        msg = f"{resource_type} not found"
        if resource_id:
            msg = f"{msg}: {resource_id}"
        super().__init__(msg, code="NOT_FOUND")


class ConflictError(TraceHubError):
    """Resource state conflict (duplicate membership, already onboarded, ...)."""

    status_code = 409

    def __init__(self, message: str) -> None:
        super().__init__(message, code="CONFLICT")


# -- Store errors --


class StoreErrorCode:
    """Store error codes (Postgres SQLSTATE where one exists)."""

    NO_ROWS = "NO_ROWS"
    UNIQUE_VIOLATION = "23505"
    FOREIGN_KEY_VIOLATION = "23503"
    NOT_NULL_VIOLATION = "23502"
    UNDEFINED_TABLE = "42P01"
    CONNECTION = "CONNECTION"
    UNKNOWN = "UNKNOWN"


class StoreError(TraceHubError):
    """Failure reported by the underlying record store.

    ``detail`` holds the raw store message. It is logged, never returned
    to the client.
    """

    def __init__(self, store_code: str, detail: str = "") -> None:
        self.store_code = store_code
        self.detail = detail
        super().__init__(detail or f"Store error {store_code}", code="STORE_ERROR")


class ServiceUnavailableError(TraceHubError):
    """A backing service (store, identity provider) is unavailable."""

    status_code = 503

    def __init__(self, service_name: str, message: str = "") -> None:
        self.service_name = service_name
        super().__init__(
            message or f"Service {service_name} is unavailable",
            code="SERVICE_UNAVAILABLE",
        )


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "NotFoundError",
    "OnboardingRequiredError",
    "OrgIsolationError",
    "ServiceUnavailableError",
    "StoreError",
    "StoreErrorCode",
    "TraceHubError",
    "ValidationError",
]
