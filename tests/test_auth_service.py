"""
tests.test_auth_service

AuthService use cases: register, authenticate, refresh, logout.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from credgate.auth.errors import (
    BadCredentials,
    Conflict,
    PrincipalNotFound,
    TokenExpired,
    TokenNotFound,
    ValidationError,
)
from credgate.auth.jwt import JwtConfig, TokenCodec
from credgate.auth.models import TokenOk
from credgate.db.models import RefreshToken, utcnow
from credgate.db.repositories.refresh_tokens import RefreshTokenLedger
from credgate.db.repositories.users import UserRepo
from credgate.db.session import create_sessionmaker
from credgate.services.auth_service import AuthService, AuthTokens
from credgate.settings import Settings


async def _register_alice(svc: AuthService, **overrides) -> AuthTokens:
    fields = {
        "first_name": "Alice",
        "last_name": "Liddell",
        "username": "alice",
        "email": "alice@example.com",
        "password": "hunter22",
    }
    fields.update(overrides)
    return await svc.register(**fields)


def _roles(codec: TokenCodec, token: str) -> frozenset[str]:
    result = codec.verify(token)
    assert isinstance(result, TokenOk)
    return result.claims.roles


@pytest.mark.asyncio
async def test_register_issues_token_pair_with_default_role(
    auth_service: AuthService, session: AsyncSession, codec: TokenCodec
) -> None:
    tokens = await _register_alice(auth_service)

    assert tokens.access_token and tokens.refresh_token
    assert tokens.expires_at > int(datetime.now(tz=UTC).timestamp() * 1000)
    assert _roles(codec, tokens.access_token) == frozenset({"USER"})

    user = await UserRepo(session).find_by_username("alice")
    assert user is not None
    assert user.roles == ["USER"]
    assert user.password_hash != "hunter22"


@pytest.mark.asyncio
async def test_register_keeps_requested_roles(auth_service: AuthService, codec: TokenCodec) -> None:
    tokens = await _register_alice(auth_service, roles=["ADMIN", "USER"])
    assert _roles(codec, tokens.access_token) == frozenset({"ADMIN", "USER"})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "field"),
    [
        ({"first_name": "   "}, "firstName"),
        ({"last_name": ""}, "lastName"),
        ({"username": "al"}, "username"),
        ({"email": "not-an-email"}, "email"),
        ({"password": "short"}, "password"),
        ({"roles": ["SUPERUSER"]}, "roles"),
    ],
)
async def test_register_rejects_malformed_input(
    auth_service: AuthService, overrides: dict, field: str
) -> None:
    with pytest.raises(ValidationError) as exc:
        await _register_alice(auth_service, **overrides)
    assert field in exc.value.fields


@pytest.mark.asyncio
async def test_register_rejects_taken_username_or_email(auth_service: AuthService) -> None:
    await _register_alice(auth_service)

    with pytest.raises(Conflict):
        await _register_alice(auth_service, email="other@example.com")
    with pytest.raises(Conflict):
        await _register_alice(auth_service, username="alice2", email="ALICE@example.com")


@pytest.mark.asyncio
async def test_authenticate_by_username_or_email(
    auth_service: AuthService, codec: TokenCodec
) -> None:
    registered = await _register_alice(auth_service)

    by_name = await auth_service.authenticate(username_or_email="alice", password="hunter22")
    by_mail = await auth_service.authenticate(
        username_or_email="alice@example.com", password="hunter22"
    )

    assert len({registered.access_token, by_name.access_token, by_mail.access_token}) == 3
    assert _roles(codec, by_name.access_token) == _roles(codec, registered.access_token)
    assert _roles(codec, by_mail.access_token) == frozenset({"USER"})


@pytest.mark.asyncio
async def test_authenticate_supersedes_previous_refresh_token(
    auth_service: AuthService, session: AsyncSession, settings
) -> None:
    first = await _register_alice(auth_service)
    second = await auth_service.authenticate(username_or_email="alice", password="hunter22")

    ledger = RefreshTokenLedger(session, ttl=settings.refresh_token_ttl)
    assert await ledger.lookup(first.refresh_token) is None
    assert await ledger.lookup(second.refresh_token) is not None

    with pytest.raises(TokenNotFound):
        await auth_service.refresh(refresh_token=first.refresh_token)


@pytest.mark.asyncio
async def test_authenticate_failures(auth_service: AuthService) -> None:
    await _register_alice(auth_service)

    with pytest.raises(PrincipalNotFound):
        await auth_service.authenticate(username_or_email="nobody", password="hunter22")
    with pytest.raises(BadCredentials):
        await auth_service.authenticate(username_or_email="alice", password="wrong-password")


@pytest.mark.asyncio
async def test_refresh_renews_access_token_only(
    auth_service: AuthService, codec: TokenCodec
) -> None:
    registered = await _register_alice(auth_service)

    refreshed = await auth_service.refresh(refresh_token=registered.refresh_token)

    assert refreshed.refresh_token == registered.refresh_token
    assert refreshed.access_token != registered.access_token
    assert codec.extract_subject(refreshed.access_token) == "alice"


@pytest.mark.asyncio
async def test_refresh_unknown_token(auth_service: AuthService) -> None:
    with pytest.raises(TokenNotFound):
        await auth_service.refresh(refresh_token="never-issued")


@pytest.mark.asyncio
async def test_refresh_with_expired_token_revokes_it(
    auth_service: AuthService, session: AsyncSession, settings
) -> None:
    registered = await _register_alice(auth_service)
    await session.execute(
        update(RefreshToken)
        .where(RefreshToken.token == registered.refresh_token)
        .values(expires_at=utcnow() - timedelta(seconds=1))
    )
    await session.commit()

    with pytest.raises(TokenExpired):
        await auth_service.refresh(refresh_token=registered.refresh_token)

    ledger = RefreshTokenLedger(session, ttl=settings.refresh_token_ttl)
    assert await ledger.lookup(registered.refresh_token) is None
    with pytest.raises(TokenNotFound):
        await auth_service.refresh(refresh_token=registered.refresh_token)


@pytest.mark.asyncio
async def test_logout_revokes_and_is_idempotent(auth_service: AuthService) -> None:
    registered = await _register_alice(auth_service)

    await auth_service.logout(username="alice")
    await auth_service.logout(username="alice")

    with pytest.raises(TokenNotFound):
        await auth_service.refresh(refresh_token=registered.refresh_token)


@pytest.mark.asyncio
async def test_logout_unknown_user(auth_service: AuthService) -> None:
    with pytest.raises(PrincipalNotFound):
        await auth_service.logout(username="ghost")



@pytest.mark.asyncio
async def test_expires_at_matches_signed_exp(
    session: AsyncSession, settings: Settings, codec: TokenCodec
) -> None:
    # Sub-second clock: the reported expiry must follow the truncated `exp` claim.
    at = (datetime.now(tz=UTC) - timedelta(minutes=1)).replace(microsecond=999_999)
    frozen = TokenCodec(JwtConfig.from_settings(settings), clock=lambda: at)
    svc = AuthService(session=session, settings=settings, codec=frozen)

    registered = await _register_alice(svc)
    logged_in = await svc.authenticate(username_or_email="alice", password="hunter22")
    refreshed = await svc.refresh(refresh_token=logged_in.refresh_token)

    for tokens in (registered, logged_in, refreshed):
        result = codec.verify(tokens.access_token)
        assert isinstance(result, TokenOk)
        assert tokens.expires_at == int(result.claims.expires_at.timestamp()) * 1000
        assert tokens.expires_at % 1000 == 0


@pytest.mark.asyncio
async def test_concurrent_logins_leave_one_live_refresh_token(
    engine: AsyncEngine, auth_service: AuthService, settings: Settings, codec: TokenCodec
) -> None:
    await _register_alice(auth_service)
    sessions = create_sessionmaker(engine)

    async def login() -> AuthTokens:
        async with sessions() as s:
            svc = AuthService(session=s, settings=settings, codec=codec)
            return await svc.authenticate(username_or_email="alice", password="hunter22")

    results = await asyncio.gather(*(login() for _ in range(8)), return_exceptions=True)

    errors = [r for r in results if isinstance(r, BaseException)]
    assert errors == []

    async with sessions() as s:
        user = await UserRepo(s).find_by_username("alice")
        assert user is not None
        count = select(func.count()).select_from(RefreshToken).where(RefreshToken.user_id == user.id)
        assert (await s.execute(count)).scalar_one() == 1
        stored = (
            await s.execute(select(RefreshToken.token).where(RefreshToken.user_id == user.id))
        ).scalar_one()

        ledger = RefreshTokenLedger(s, ttl=settings.refresh_token_ttl)
        live = [r.refresh_token for r in results if await ledger.lookup(r.refresh_token)]
        assert live == [stored]
