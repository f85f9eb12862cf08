"""
credgate.services.auth_service

Authentication lifecycle service (transaction + persistence owner).

Responsibilities:
- Register principals and issue their first token pair.
- Authenticate by username or email and supersede the previous session.
- Renew access tokens from a stored refresh token.
- Log out by revoking the principal's refresh token.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

import pydantic
from pydantic import BaseModel, EmailStr, StringConstraints, field_validator
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from credgate.auth.errors import (
    BadCredentials,
    Conflict,
    PrincipalNotFound,
    TokenExpired,
    TokenNotFound,
    ValidationError,
)
from credgate.auth.jwt import TokenCodec
from credgate.auth.models import DEFAULT_ROLES, Role
from credgate.auth.passwords import hash_password
from credgate.db.models import User
from credgate.db.repositories.refresh_tokens import RefreshTokenLedger
from credgate.db.repositories.users import UserRepo
from credgate.observability.logging import get_logger
from credgate.settings import Settings

log = get_logger(__name__)

NonBlank = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
Username = Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=50)]


class RegistrationInput(BaseModel):
    first_name: NonBlank
    last_name: NonBlank
    username: Username
    email: EmailStr
    password: Annotated[str, StringConstraints(min_length=8)]
    roles: set[Role] | None = None

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes")
        return v


@dataclass(frozen=True, slots=True)
class AuthTokens:
    access_token: str
    refresh_token: str
    # Access token expiry, epoch milliseconds.
    expires_at: int


def _field_errors(exc: pydantic.ValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("body",)
        fields.setdefault(to_camel(str(loc[0])), err["msg"])
    return fields


class AuthService:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        codec: TokenCodec,
    ) -> None:
        self._session = session
        self._settings = settings
        self._codec = codec

        self._users = UserRepo(session)
        self._ledger = RefreshTokenLedger(session, ttl=settings.refresh_token_ttl)

    async def register(
        self,
        *,
        first_name: str,
        last_name: str,
        username: str,
        email: str,
        password: str,
        roles: list[str] | None = None,
    ) -> AuthTokens:
        try:
            data = RegistrationInput(
                first_name=first_name,
                last_name=last_name,
                username=username,
                email=email,
                password=password,
                roles=set(roles) if roles else None,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(_field_errors(e)) from e

        email_norm = str(data.email).lower()
        # Precondition check; the unique constraints below catch the racing insert.
        if await self._users.exists(username=data.username, email=email_norm):
            log.info("registration_conflict", username=data.username)
            raise Conflict()

        role_set = {r.value for r in data.roles} if data.roles else set(DEFAULT_ROLES)
        password_hash = await run_in_threadpool(
            hash_password, data.password, rounds=self._settings.bcrypt_rounds
        )
        user = User(
            first_name=data.first_name,
            last_name=data.last_name,
            username=data.username,
            email=email_norm,
            password_hash=password_hash,
            roles=sorted(role_set),
        )

        try:
            await self._users.save(user)
            tokens = await self._issue_tokens(user)
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            log.info("registration_conflict", username=data.username)
            raise Conflict() from e

        log.info("user_registered", username=user.username, user_id=str(user.id))
        return tokens

    async def authenticate(self, *, username_or_email: str, password: str) -> AuthTokens:
        user = await self._users.find_by_email(username_or_email)
        if user is None:
            user = await self._users.find_by_username(username_or_email)
        if user is None:
            log.warning("authentication_failed", reason="unknown_principal")
            raise PrincipalNotFound()

        if not await self._users.verify(password, user.password_hash):
            log.warning("authentication_failed", reason="bad_credentials", username=user.username)
            raise BadCredentials()

        # Issuing supersedes any refresh token from an earlier login.
        tokens = await self._issue_tokens(user)
        await self._session.commit()
        log.info("authenticated", username=user.username)
        return tokens

    async def refresh(self, *, refresh_token: str) -> AuthTokens:
        record = await self._ledger.lookup(refresh_token)
        if record is None:
            log.info("token_refresh_failed", reason="not_found")
            raise TokenNotFound()

        try:
            await self._ledger.verify_not_expired(record)
        except TokenExpired:
            # Persist the revocation before reporting the failure.
            await self._session.commit()
            raise

        user = record.user
        access_token, expires_at = self._issue_access(user)
        log.info("token_refreshed", username=user.username)
        return AuthTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )

    async def logout(self, *, username: str) -> None:
        user = await self._users.find_by_username(username)
        if user is None:
            raise PrincipalNotFound()
        revoked = await self._ledger.revoke_all(user)
        await self._session.commit()
        log.info("logout", username=username, revoked=revoked)

    def _issue_access(self, user: User) -> tuple[str, int]:
        token, exp = self._codec.issue_with_expiry(user.username, {"roles": sorted(user.roles)})
        return token, int(exp.timestamp()) * 1000

    async def _issue_tokens(self, user: User) -> AuthTokens:
        access_token, expires_at = self._issue_access(user)
        refresh = await self._ledger.issue(user)
        return AuthTokens(
            access_token=access_token,
            refresh_token=refresh.token,
            expires_at=expires_at,
        )


# --- Module Notes -----------------------------------------------------------
# Refresh does not rotate the refresh token: the same string is returned until it
# expires, the user logs out, or a new login supersedes it.
