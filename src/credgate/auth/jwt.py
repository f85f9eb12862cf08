"""
credgate.auth.jwt

Access token codec.

Responsibilities:
- Issue short-lived, signed JWT access tokens (sub/iat/exp/iss/aud/jti + extra claims).
- Verify tokens into a tagged `TokenOk | TokenErr` result.
- Extract the subject for callers that only need the username.

Note:
- HS256 with a single process-wide key; rotating the key invalidates every
  outstanding access token.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import (
    DecodeError,
    ExpiredSignatureError,
    InvalidSignatureError,
    InvalidTokenError,
)

from credgate.auth.errors import TokenInvalid
from credgate.auth.models import TokenClaims, TokenErr, TokenFailure, TokenOk, TokenResult
from credgate.settings import Settings

_REGISTERED = ("sub", "iat", "exp", "iss", "aud", "jti")


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str
    access_ttl: timedelta = timedelta(minutes=15)

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
            access_ttl=settings.access_token_ttl,
        )


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class TokenCodec:
    """
    Stateless signer/verifier. The config is fixed at construction, so one
    instance is shared by every request.
    """

    def __init__(self, cfg: JwtConfig, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._cfg = cfg
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self._cfg.access_ttl

    def issue(
        self,
        subject: str,
        extra_claims: dict[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> str:
        return self.issue_with_expiry(subject, extra_claims, ttl)[0]

    def issue_with_expiry(
        self,
        subject: str,
        extra_claims: dict[str, Any] | None = None,
        ttl: timedelta | None = None,
    ) -> tuple[str, datetime]:
        """Issue a token and return it with its `exp`, truncated to whole seconds as signed."""
        ttl = self._cfg.access_ttl if ttl is None else ttl
        if not subject:
            raise ValueError("subject must be non-empty")
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")

        now = self._clock()
        exp = int((now + ttl).timestamp())
        payload: dict[str, Any] = dict(extra_claims or {})
        # Registered claims always win over caller-supplied extras.
        payload.update(
            {
                "sub": subject,
                "iat": int(now.timestamp()),
                "exp": exp,
                "iss": self._cfg.issuer,
                "aud": self._cfg.audience,
                "jti": uuid.uuid4().hex,
            }
        )
        token = jwt.encode(payload, self._cfg.secret, algorithm=self._cfg.alg)
        return token, datetime.fromtimestamp(exp, tz=UTC)

    def verify(self, token: str) -> TokenResult:
        try:
            # Signature is checked before any claim is interpreted.
            payload = jwt.decode(
                token,
                self._cfg.secret,
                algorithms=[self._cfg.alg],
                issuer=self._cfg.issuer,
                audience=self._cfg.audience,
                options={"require": ["exp", "iat", "sub"]},
            )
        except InvalidSignatureError:
            return TokenErr(TokenFailure.bad_signature)
        except DecodeError:
            return TokenErr(TokenFailure.malformed)
        except ExpiredSignatureError:
            return TokenErr(TokenFailure.expired)
        except InvalidTokenError:
            return TokenErr(TokenFailure.claims)

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            return TokenErr(TokenFailure.claims)

        return TokenOk(
            TokenClaims(
                subject=subject,
                issued_at=datetime.fromtimestamp(payload["iat"], tz=UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=UTC),
                extra={k: v for k, v in payload.items() if k not in _REGISTERED},
            )
        )

    def extract_subject(self, token: str) -> str:
        result = self.verify(token)
        if isinstance(result, TokenErr):
            raise TokenInvalid()
        return result.claims.subject


# --- Module Notes -----------------------------------------------------------
# `TokenErr.reason` is for server-side logs. The API never tells a client whether
# a token was expired, tampered with or malformed.
