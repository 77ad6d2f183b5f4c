# ruff: noqa: INP001
"""Authorization guard and bearer-extraction tests."""

from __future__ import annotations

import logging

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.core.auth import (
    AuthContext,
    _extract_bearer_token,
    authorize_owner,
    get_token_verifier,
    require_path_owner,
)
from app.core.error_handling import install_error_handling
from app.core.errors import ForbiddenError
from app.core.tokens import TokenVerifier

SECRET = "guard-secret-0123456789-0123456789-abcdef"
OWNER_DEP = Depends(require_path_owner)


def _app(verifier: TokenVerifier | None) -> FastAPI:
    app = FastAPI()
    if verifier is not None:
        app.state.token_verifier = verifier
    install_error_handling(app)

    @app.get("/api/{user_id}/whoami")
    async def whoami(auth: AuthContext = OWNER_DEP) -> dict[str, str]:
        return {"subject": auth.subject}

    return app


def test_authorize_owner_allows_exact_match() -> None:
    authorize_owner("user_1", "user_1")


@pytest.mark.parametrize(
    ("subject", "path_owner"),
    [
        ("user_1", "user_2"),
        ("user_1", "USER_1"),
        ("user_1", "user_1 "),
        ("user_1", "user_"),
        ("user_1", ""),
    ],
)
def test_authorize_owner_rejects_anything_but_exact_match(subject: str, path_owner: str) -> None:
    with pytest.raises(ForbiddenError) as exc:
        authorize_owner(subject, path_owner)
    assert exc.value.status_code == 403


def test_forbidden_is_logged_with_redacted_ids(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="app.core.auth")

    with pytest.raises(ForbiddenError):
        authorize_owner("user_0123456789", "user_9876543210")

    records = [r for r in caplog.records if r.getMessage() == "auth.owner.forbidden"]
    assert records
    assert records[-1].subject == "456789"  # type: ignore[attr-defined]
    assert records[-1].path_owner == "543210"  # type: ignore[attr-defined]
    assert "user_0123456789" not in caplog.text


@pytest.mark.parametrize(
    ("header", "expected"),
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("Basic abc", None),
        ("Bearer", None),
        ("Bearer    ", None),
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("bearer   abc.def.ghi  ", "abc.def.ghi"),
    ],
)
def test_extract_bearer_token(header: str | None, expected: str | None) -> None:
    assert _extract_bearer_token(header) == expected


def test_missing_token_is_401_with_bearer_challenge() -> None:
    client = TestClient(_app(TokenVerifier(secret=SECRET)))

    resp = client.get("/api/u1/whoami")

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"
    assert resp.headers.get("www-authenticate") == "Bearer"


def test_non_bearer_scheme_is_401() -> None:
    client = TestClient(_app(TokenVerifier(secret=SECRET)))

    resp = client.get("/api/u1/whoami", headers={"Authorization": "Basic dTE6cHc="})

    assert resp.status_code == 401


def test_invalid_token_is_401_not_403() -> None:
    client = TestClient(_app(TokenVerifier(secret=SECRET)))

    resp = client.get("/api/u2/whoami", headers={"Authorization": "Bearer garbage"})

    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid or expired token"


def test_valid_token_for_other_owner_is_403() -> None:
    verifier = TokenVerifier(secret=SECRET)
    client = TestClient(_app(verifier))

    resp = client.get(
        "/api/u2/whoami",
        headers={"Authorization": f"Bearer {verifier.issue('u1')}"},
    )

    assert resp.status_code == 403
    assert resp.json()["detail"] == "Not authorized to access this user's tasks"


def test_valid_token_for_own_path_is_allowed() -> None:
    verifier = TokenVerifier(secret=SECRET)
    client = TestClient(_app(verifier))

    resp = client.get(
        "/api/u1/whoami",
        headers={"Authorization": f"Bearer {verifier.issue('u1')}"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"subject": "u1"}


def test_missing_verifier_is_a_server_error() -> None:
    client = TestClient(_app(None), raise_server_exceptions=False)

    resp = client.get("/api/u1/whoami", headers={"Authorization": "Bearer x"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Internal Server Error"


def test_get_token_verifier_reads_app_state() -> None:
    verifier = TokenVerifier(secret=SECRET)
    app = _app(verifier)

    class _Req:
        pass

    request = _Req()
    request.app = app  # type: ignore[attr-defined]

    assert get_token_verifier(request) is verifier  # type: ignore[arg-type]
