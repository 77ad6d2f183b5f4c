"""Bearer-token authentication and path-owner authorization dependencies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import ForbiddenError, UnauthorizedError
from app.core.logging import get_logger, redact_subject
from app.core.tokens import TokenVerifier

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)
SECURITY_DEP = Depends(security)


@dataclass
class AuthContext:
    """Authenticated caller resolved from the bearer token."""

    subject: str
    claims: dict[str, Any] = field(default_factory=dict)


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    value = authorization.strip()
    if not value:
        return None
    if not value.lower().startswith("bearer "):
        return None
    token = value.split(" ", maxsplit=1)[1].strip()
    return token or None


def get_token_verifier(request: Request) -> TokenVerifier:
    """Return the process-wide verifier attached to the app at startup."""
    verifier = getattr(request.app.state, "token_verifier", None)
    if not isinstance(verifier, TokenVerifier):
        raise RuntimeError("TokenVerifier is not configured on app.state")
    return verifier


VERIFIER_DEP = Depends(get_token_verifier)


async def get_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = SECURITY_DEP,
    verifier: TokenVerifier = VERIFIER_DEP,
) -> AuthContext:
    """Resolve the caller identity or raise `UnauthorizedError`."""
    token = credentials.credentials.strip() if credentials is not None else None
    if not token:
        token = _extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise UnauthorizedError
    verified = verifier.verify(token)
    return AuthContext(subject=verified.subject, claims=verified.claims)


AUTH_DEP = Depends(get_auth_context)


def authorize_owner(verified_subject: str, path_owner_id: str) -> None:
    """Allow only when the verified subject is exactly the path owner."""
    if verified_subject != path_owner_id:
        logger.info(
            "auth.owner.forbidden",
            extra={
                "subject": redact_subject(verified_subject),
                "path_owner": redact_subject(path_owner_id),
            },
        )
        raise ForbiddenError


async def require_path_owner(
    user_id: str,
    auth: AuthContext = AUTH_DEP,
) -> AuthContext:
    """Authenticate first, then enforce that `{user_id}` is the caller."""
    authorize_owner(auth.subject, user_id)
    return auth
