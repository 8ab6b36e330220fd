"""Bearer token verification.

- No token -> no identity (routes decide whether that is a 401)
- Invalid/expired token -> 401
- Valid token -> IdentityClaims (external user id + optional email)

Tokens are issued by the identity provider and signed with a shared
HS256 secret (PyJWT). The secret comes from the environment, never from
code. Organization membership is NOT read from the token: it is resolved
per request from the users table.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import jwt

from src.shared.errors import AuthenticationError

_ALGORITHM = "HS256"
_BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class IdentityClaims:
    """Verified identity carried by a bearer token."""

    subject: str
    email: str | None = None


def encode_token(
    *,
    subject: str,
    secret: str,
    email: str | None = None,
    ttl_seconds: int = 3600,
) -> str:
    """Create a signed JWT for ``subject`` (used by tests and local tooling)."""
    now = int(time.time())
    payload: dict[str, object] = {
        "sub": subject,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_token(token: str, *, secret: str) -> IdentityClaims:
    """Decode and validate a JWT. Raises AuthenticationError on failure."""
    try:
        data = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc

    subject = data.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise AuthenticationError("Invalid token: empty subject")
    email = data.get("email")
    return IdentityClaims(subject=subject, email=email if isinstance(email, str) else None)


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        return None
    if not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None
