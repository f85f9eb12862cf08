"""
credgate.api.routers.auth

Public authentication endpoints.

Responsibilities:
- Register and authenticate principals (returns an access/refresh token pair).
- Renew access tokens from a bearer refresh token.
- Log out by revoking the caller's refresh token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from starlette.status import HTTP_400_BAD_REQUEST

from credgate.api.deps import auth_service_dep, token_codec_dep
from credgate.auth.bearer import parse_bearer
from credgate.auth.errors import TokenInvalid
from credgate.auth.jwt import TokenCodec
from credgate.observability.logging import get_logger
from credgate.services.auth_service import AuthService, AuthTokens

log = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterRequest(_CamelModel):
    # Field rules (blank names, email format, password length) live in the service.
    first_name: str
    last_name: str
    username: str
    email: str
    password: str
    roles: list[str] | None = None


class AuthenticateRequest(_CamelModel):
    username_or_email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class AuthTokensResponse(_CamelModel):
    access_token: str
    refresh_token: str
    expires_at: int

    @classmethod
    def from_tokens(cls, tokens: AuthTokens) -> AuthTokensResponse:
        return cls(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
        )


class MessageResponse(BaseModel):
    message: str


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse({"message": message}, status_code=HTTP_400_BAD_REQUEST)


@router.post("/register", response_model=AuthTokensResponse)
async def register(
    body: RegisterRequest,
    svc: AuthService = Depends(auth_service_dep),
) -> AuthTokensResponse:
    log.info("registration_attempt", username=body.username)
    tokens = await svc.register(
        first_name=body.first_name,
        last_name=body.last_name,
        username=body.username,
        email=body.email,
        password=body.password,
        roles=body.roles,
    )
    return AuthTokensResponse.from_tokens(tokens)


@router.post("/authenticate", response_model=AuthTokensResponse)
async def authenticate(
    body: AuthenticateRequest,
    svc: AuthService = Depends(auth_service_dep),
) -> AuthTokensResponse:
    log.info("authentication_attempt", principal=body.username_or_email)
    tokens = await svc.authenticate(
        username_or_email=body.username_or_email,
        password=body.password,
    )
    return AuthTokensResponse.from_tokens(tokens)


@router.post(
    "/refresh-token",
    response_model=AuthTokensResponse,
    responses={400: {"model": MessageResponse}},
)
async def refresh_token(
    authorization: str | None = Header(default=None),
    svc: AuthService = Depends(auth_service_dep),
):
    token = parse_bearer(authorization)
    if token is None:
        log.warning("token_refresh_rejected", reason="malformed_header")
        return _bad_request("Invalid refresh token format")

    tokens = await svc.refresh(refresh_token=token)
    return AuthTokensResponse.from_tokens(tokens)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={400: {"model": MessageResponse}},
)
async def logout(
    authorization: str | None = Header(default=None),
    codec: TokenCodec = Depends(token_codec_dep),
    svc: AuthService = Depends(auth_service_dep),
):
    token = parse_bearer(authorization)
    if token is None:
        return _bad_request("Invalid token")
    try:
        username = codec.extract_subject(token)
    except TokenInvalid:
        return _bad_request("Invalid token")

    await svc.logout(username=username)
    return MessageResponse(message="Logged out successfully")


# --- Module Notes -----------------------------------------------------------
# /register, /authenticate and /refresh-token are exempt from the bearer middleware
# (see `api.app.public_paths`); /logout goes through it like any protected route.
