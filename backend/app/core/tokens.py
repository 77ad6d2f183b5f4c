"""HS256 bearer-token verification (and local issuance) with PyJWT."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import jwt

from app.core.errors import InvalidTokenError
from app.core.logging import get_logger

if TYPE_CHECKING:
    from app.core.config import Settings

logger = get_logger(__name__)
REQUIRED_TOKEN_CLAIMS = ["exp", "sub"]


@dataclass(frozen=True)
class VerifiedToken:
    """Subject and raw claims of a token that passed verification."""

    subject: str
    claims: dict[str, Any] = field(default_factory=dict)


class TokenVerifier:
    """Verify (and mint) bearer tokens signed with one shared secret.

    Instances are built once per process and injected into request handlers;
    there is no module-level verifier.
    """

    def __init__(
        self,
        *,
        secret: str,
        algorithm: str = "HS256",
        leeway_seconds: float = 0.0,
        audience: str | None = None,
        issuer: str | None = None,
        expires_seconds: int = 60 * 60 * 24,
    ) -> None:
        if not secret:
            raise ValueError("TokenVerifier requires a non-empty secret")
        self._secret = secret
        self.algorithm = algorithm
        self.leeway_seconds = leeway_seconds
        self.audience = audience or None
        self.issuer = issuer or None
        self.expires_seconds = expires_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenVerifier:
        return cls(
            secret=settings.jwt_secret.strip(),
            algorithm=settings.jwt_algorithm,
            leeway_seconds=settings.jwt_leeway_seconds,
            audience=settings.jwt_audience.strip(),
            issuer=settings.jwt_issuer.strip(),
            expires_seconds=settings.jwt_expires_seconds,
        )

    def verify(self, token: str) -> VerifiedToken:
        """Decode `token` and return its subject, or raise `InvalidTokenError`.

        Rejects bad signatures, any algorithm other than the configured one,
        malformed payloads, expired tokens, and tokens without a usable `sub`.
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway_seconds,
                options={
                    "require": REQUIRED_TOKEN_CLAIMS,
                    "verify_aud": self.audience is not None,
                },
            )
        except jwt.ExpiredSignatureError as exc:
            logger.info("auth.token.invalid", extra={"reason": "expired"})
            raise InvalidTokenError from exc
        except jwt.InvalidTokenError as exc:
            logger.info("auth.token.invalid", extra={"reason": exc.__class__.__name__})
            raise InvalidTokenError from exc

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            logger.info("auth.token.invalid", extra={"reason": "bad_subject"})
            raise InvalidTokenError
        return VerifiedToken(subject=subject, claims=dict(claims))

    def issue(
        self,
        subject: str,
        *,
        expires_in: timedelta | None = None,
        extra_claims: dict[str, Any] | None = None,
    ) -> str:
        """Mint a token the way the external auth provider does."""
        now = datetime.now(UTC)
        lifetime = expires_in if expires_in is not None else timedelta(seconds=self.expires_seconds)
        payload: dict[str, Any] = dict(extra_claims or {})
        payload.update({"sub": subject, "iat": now, "exp": now + lifetime})
        if self.audience is not None:
            payload.setdefault("aud", self.audience)
        if self.issuer is not None:
            payload.setdefault("iss", self.issuer)
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)
