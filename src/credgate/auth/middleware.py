"""
credgate.auth.middleware

Per-request bearer authentication.

Responsibilities:
- Decide, before routing, whether a request proceeds (optionally with an
  authenticated identity) or is short-circuited with a 401.
- Attach the verified identity to `request.state` for downstream handlers.

Requests without a bearer token proceed unauthenticated; protected routes reject
them through `auth.deps.require_identity`.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.status import HTTP_401_UNAUTHORIZED
from starlette.types import ASGIApp

from credgate.auth.bearer import parse_bearer
from credgate.auth.errors import TokenInvalid
from credgate.auth.jwt import TokenCodec
from credgate.auth.models import AuthenticatedIdentity, Principal, TokenErr
from credgate.db.repositories.users import UserRepo
from credgate.observability.logging import get_logger

log = get_logger(__name__)

UNAUTHORIZED_BODY = {"error": "Token expired or invalid"}


@dataclass(frozen=True, slots=True)
class Proceed:
    identity: AuthenticatedIdentity | None = None


@dataclass(frozen=True, slots=True)
class Reject:
    response: Response


AuthDecision = Proceed | Reject


def _unauthorized() -> Reject:
    return Reject(JSONResponse(UNAUTHORIZED_BODY, status_code=HTTP_401_UNAUTHORIZED))


class RequestAuthenticator:
    def __init__(self, *, exempt_paths: Iterable[str] = ()) -> None:
        self._exempt = frozenset(exempt_paths)

    async def authenticate(self, request: Request) -> AuthDecision:
        try:
            return await self._decide(request)
        except Exception:
            # A bad token or a store hiccup must never turn into a 500 with a traceback.
            log.exception("bearer_authentication_error")
            return _unauthorized()

    async def _decide(self, request: Request) -> AuthDecision:
        if request.url.path in self._exempt:
            return Proceed()

        token = parse_bearer(request.headers.get("authorization"))
        if token is None:
            return Proceed()

        codec: TokenCodec = request.app.state.token_codec
        try:
            subject = codec.extract_subject(token)
        except TokenInvalid:
            log.info("bearer_rejected", reason="unverifiable")
            return _unauthorized()

        if getattr(request.state, "identity", None) is not None:
            return Proceed()

        async with request.app.state.sessionmaker() as session:
            user = await UserRepo(session).find_by_username(subject)
        if user is None:
            log.info("bearer_rejected", reason="unknown_subject")
            return _unauthorized()

        result = codec.verify(token)
        if isinstance(result, TokenErr):
            log.info("bearer_rejected", reason=result.reason.value)
            return _unauthorized()
        if result.claims.subject != user.username:
            log.info("bearer_rejected", reason="subject_mismatch")
            return _unauthorized()

        principal = Principal(
            id=user.id,
            username=user.username,
            email=user.email,
            roles=frozenset(user.roles),
        )
        return Proceed(AuthenticatedIdentity(principal=principal, claims=result.claims))


class BearerAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, *, authenticator: RequestAuthenticator) -> None:
        super().__init__(app)
        self._authenticator = authenticator

    async def dispatch(self, request: Request, call_next) -> Response:
        decision = await self._authenticator.authenticate(request)
        if isinstance(decision, Reject):
            return decision.response

        if decision.identity is not None:
            # request.state lives in this request's scope only.
            request.state.identity = decision.identity
            structlog.contextvars.bind_contextvars(subject=decision.identity.principal.username)
        return await call_next(request)


# --- Module Notes -----------------------------------------------------------
# The 401 body is identical for every failure; clients recover from an expired
# access token through /auth/refresh-token, not by inspecting this response.
