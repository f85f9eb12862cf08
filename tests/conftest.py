"""
tests.conftest

Shared fixtures: test settings backed by a temp-file SQLite database, a token
codec, a DB session, and an in-process HTTP client against the app factory.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from credgate.api.app import create_app
from credgate.auth.jwt import JwtConfig, TokenCodec
from credgate.db.init_db import init_db
from credgate.db.session import create_engine, create_sessionmaker
from credgate.services.auth_service import AuthService
from credgate.settings import Settings

TEST_SECRET = "test-signing-key-0123456789abcdef0123456789"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'credgate.db'}",
        jwt_secret=TEST_SECRET,
        bcrypt_rounds=4,
    )


@pytest.fixture
def codec(settings: Settings) -> TokenCodec:
    return TokenCodec(JwtConfig.from_settings(settings))


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with create_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def auth_service(session: AsyncSession, settings: Settings, codec: TokenCodec) -> AuthService:
    return AuthService(session=session, settings=settings, codec=codec)


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    return create_app(settings=settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    # httpx ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
