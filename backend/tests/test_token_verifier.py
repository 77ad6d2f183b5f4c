# ruff: noqa: INP001
"""Bearer-token verification tests for the shared-secret HS256 verifier."""

from __future__ import annotations

import base64
import json
import logging
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from app.core.errors import InvalidTokenError, UnauthorizedError
from app.core.tokens import TokenVerifier

SECRET = "verifier-secret-0123456789-0123456789-abc"


def _verifier(**kwargs: object) -> TokenVerifier:
    return TokenVerifier(secret=SECRET, **kwargs)  # type: ignore[arg-type]


def _encode(payload: dict[str, object], *, key: str = SECRET, algorithm: str = "HS256") -> str:
    return jwt.encode(payload, key, algorithm=algorithm)


def _future(seconds: int = 300) -> datetime:
    return datetime.now(UTC) + timedelta(seconds=seconds)


def test_verify_returns_subject_and_all_claims() -> None:
    token = _encode({"sub": "user_1", "exp": _future(), "email": "a@example.com"})

    verified = _verifier().verify(token)

    assert verified.subject == "user_1"
    assert verified.claims["email"] == "a@example.com"
    assert verified.claims["sub"] == "user_1"


def test_issued_token_round_trips_through_verify() -> None:
    verifier = _verifier()

    verified = verifier.verify(verifier.issue("user_abc"))

    assert verified.subject == "user_abc"
    assert verified.claims["exp"] > verified.claims["iat"]


def test_issue_uses_default_lifetime_of_one_day() -> None:
    verifier = _verifier()

    claims = jwt.decode(verifier.issue("u1"), SECRET, algorithms=["HS256"])

    assert claims["exp"] - claims["iat"] == 60 * 60 * 24


def test_invalid_token_is_an_unauthorized_error() -> None:
    assert issubclass(InvalidTokenError, UnauthorizedError)
    assert InvalidTokenError().status_code == 401


def test_wrong_secret_is_rejected() -> None:
    token = _encode({"sub": "u1", "exp": _future()}, key="another-secret-0123456789-0123456789-x")

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_expired_token_is_rejected() -> None:
    token = _encode({"sub": "u1", "exp": datetime.now(UTC) - timedelta(seconds=5)})

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_leeway_accepts_recently_expired_token() -> None:
    token = _encode({"sub": "u1", "exp": datetime.now(UTC) - timedelta(seconds=5)})

    verified = _verifier(leeway_seconds=60).verify(token)

    assert verified.subject == "u1"


def test_missing_exp_is_rejected() -> None:
    token = _encode({"sub": "u1"})

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_missing_subject_is_rejected() -> None:
    token = _encode({"exp": _future()})

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_blank_subject_is_rejected() -> None:
    token = _encode({"sub": "   ", "exp": _future()})

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_mismatched_algorithm_is_rejected() -> None:
    token = _encode({"sub": "u1", "exp": _future()}, algorithm="HS512")

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_unsigned_none_algorithm_is_rejected() -> None:
    def _b64(data: dict[str, object]) -> str:
        raw = json.dumps(data).encode()
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()

    exp = int(_future().timestamp())
    token = f"{_b64({'alg': 'none', 'typ': 'JWT'})}.{_b64({'sub': 'u1', 'exp': exp})}."

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c", "Bearer x.y.z"])
def test_malformed_tokens_are_rejected(token: str) -> None:
    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)


def test_audience_and_issuer_are_checked_when_configured() -> None:
    verifier = _verifier(audience="todo-api", issuer="https://app.example.com")
    good = verifier.issue("u1")
    wrong_aud = _encode(
        {"sub": "u1", "exp": _future(), "aud": "other", "iss": "https://app.example.com"},
    )

    assert verifier.verify(good).subject == "u1"
    with pytest.raises(InvalidTokenError):
        verifier.verify(wrong_aud)


def test_audience_claim_is_ignored_when_not_configured() -> None:
    token = _encode({"sub": "u1", "exp": _future(), "aud": "http://localhost:3000"})

    assert _verifier().verify(token).subject == "u1"


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError, match="non-empty secret"):
        TokenVerifier(secret="")


def test_rejection_is_logged_with_structured_reason(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="app.core.tokens")
    token = _encode({"sub": "u1", "exp": datetime.now(UTC) - timedelta(seconds=5)})

    with pytest.raises(InvalidTokenError):
        _verifier().verify(token)

    records = [r for r in caplog.records if r.getMessage() == "auth.token.invalid"]
    assert records
    assert records[-1].reason == "expired"  # type: ignore[attr-defined]
    assert token not in caplog.text
