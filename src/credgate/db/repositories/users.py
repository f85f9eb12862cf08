"""
credgate.db.repositories.users

Credential store for `User` entities.

Responsibilities:
- Look up principals by username or email.
- Persist newly registered principals.
- Compare a presented secret against the stored bcrypt hash.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from credgate.auth.passwords import verify_password
from credgate.db.models import User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_username(self, username: str) -> User | None:
        stmt = select(User).where(User.username == username)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.lower())
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def exists(self, *, username: str, email: str) -> bool:
        stmt = select(User.id).where(
            (User.username == username) | (User.email == email.lower())
        )
        return (await self._session.execute(stmt.limit(1))).first() is not None

    async def save(self, user: User) -> User:
        # Unique constraints on username/email surface as IntegrityError at flush.
        self._session.add(user)
        await self._session.flush()
        return user

    async def verify(self, raw_secret: str, stored_hash: str) -> bool:
        # bcrypt is CPU-bound; keep it off the event loop.
        return await run_in_threadpool(verify_password, raw_secret, stored_hash)


# --- Module Notes -----------------------------------------------------------
# Emails are stored lower-cased so lookups are case-insensitive; usernames are
# matched exactly.
