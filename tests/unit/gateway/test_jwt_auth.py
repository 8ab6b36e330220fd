# ruff: noqa: S105, S106  -- test fixtures require hardcoded secret values
"""Tests for bearer token verification."""

from __future__ import annotations

import time

import jwt
import pytest

from src.gateway.middleware.auth import (
    IdentityClaims,
    decode_token,
    encode_token,
    extract_bearer_token,
)
from src.shared.errors import AuthenticationError

SECRET = "test-secret-key-for-unit-tests-only"


@pytest.mark.unit
class TestDecodeToken:
    def test_round_trip_claims(self) -> None:
        token = encode_token(subject="user_2abc", secret=SECRET, email="a@example.test")
        assert decode_token(token, secret=SECRET) == IdentityClaims(
            subject="user_2abc", email="a@example.test"
        )

    def test_email_is_optional(self) -> None:
        token = encode_token(subject="user_2abc", secret=SECRET)
        assert decode_token(token, secret=SECRET).email is None

    def test_expired(self) -> None:
        token = encode_token(subject="user_2abc", secret=SECRET, ttl_seconds=-10)
        with pytest.raises(AuthenticationError, match="expired"):
            decode_token(token, secret=SECRET)

    def test_wrong_secret(self) -> None:
        token = encode_token(subject="user_2abc", secret="other-secret")
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_token(token, secret=SECRET)

    def test_missing_subject(self) -> None:
        token = jwt.encode({"exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token, secret=SECRET)

    def test_blank_subject(self) -> None:
        token = jwt.encode({"sub": " ", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError, match="empty subject"):
            decode_token(token, secret=SECRET)

    def test_missing_exp(self) -> None:
        token = jwt.encode({"sub": "user_2abc"}, SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token, secret=SECRET)

    def test_none_algorithm_rejected(self) -> None:
        token = jwt.encode({"sub": "u", "exp": int(time.time()) + 60}, None, algorithm="none")
        with pytest.raises(AuthenticationError):
            decode_token(token, secret=SECRET)

    def test_garbage(self) -> None:
        with pytest.raises(AuthenticationError):
            decode_token("not.a.jwt", secret=SECRET)


@pytest.mark.unit
class TestExtractBearerToken:
    @pytest.mark.parametrize(
        ("header", "expected"),
        [
            ("Bearer abc.def", "abc.def"),
            ("bearer abc.def", "abc.def"),
            ("Bearer    ", None),
            ("Basic dXNlcjpwYXNz", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header: str | None, expected: str | None) -> None:
        assert extract_bearer_token(header) == expected
