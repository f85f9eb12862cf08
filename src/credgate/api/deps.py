"""
credgate.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and the token codec.
- Encapsulate app.state access patterns (settings/sessionmaker/token_codec).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credgate.auth.jwt import TokenCodec
from credgate.services.auth_service import AuthService
from credgate.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The app factory pins its Settings on app.state so tests can inject their own.
    return request.app.state.settings  # type: ignore[attr-defined]


def token_codec_dep(request: Request) -> TokenCodec:
    return request.app.state.token_codec  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # The sessionmaker is created in the lifespan of `credgate.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped DB session. Commit/rollback is managed explicitly by the service layer.
    async with session_factory() as session:
        yield session


def auth_service_dep(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    codec: TokenCodec = Depends(token_codec_dep),
) -> AuthService:
    return AuthService(session=session, settings=settings, codec=codec)
