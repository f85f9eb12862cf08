"""
credgate.db.repositories.refresh_tokens

Refresh token ledger.

Responsibilities:
- Issue one opaque refresh token per user, superseding any previous one.
- Look tokens up by value and revoke expired ones on sight.
- Revoke every token a user holds (logout).
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.auth.errors import TokenExpired
from credgate.db.models import RefreshToken, User, utcnow
from credgate.observability.logging import get_logger

log = get_logger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def new_token_value() -> str:
    return secrets.token_urlsafe(48)


class RefreshTokenLedger:
    def __init__(
        self,
        session: AsyncSession,
        *,
        ttl: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session = session
        self._ttl = ttl
        self._clock = clock

    async def issue(self, user: User) -> RefreshToken:
        now = self._clock()
        values: dict[str, Any] = {
            "id": uuid.uuid4(),
            "token": new_token_value(),
            "user_id": user.id,
            "expires_at": now + self._ttl,
            "created_at": now,
        }

        insert = _UPSERT_DIALECTS.get(self._session.get_bind().dialect.name)
        if insert is not None:
            # One statement keyed on the unique user_id: concurrent logins for the same
            # user serialize on that row and the last writer's token is the only one left.
            stmt = insert(RefreshToken).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[RefreshToken.user_id],
                set_={
                    "token": stmt.excluded.token,
                    "expires_at": stmt.excluded.expires_at,
                    "created_at": stmt.excluded.created_at,
                },
            )
            await self._session.execute(stmt)
        else:
            # Same transaction; the unique user_id constraint rejects a racing insert.
            await self._session.execute(
                delete(RefreshToken).where(RefreshToken.user_id == user.id)
            )
            self._session.add(RefreshToken(**values))
            await self._session.flush()

        issued = await self.lookup(values["token"])
        if issued is None:
            raise RuntimeError("refresh token vanished after upsert")
        log.debug("refresh_token_issued", user_id=str(user.id))
        return issued

    async def lookup(self, token: str) -> RefreshToken | None:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def verify_not_expired(self, token: RefreshToken) -> RefreshToken:
        if token.is_expired(self._clock()):
            await self._session.execute(delete(RefreshToken).where(RefreshToken.id == token.id))
            log.info("refresh_token_expired", user_id=str(token.user_id))
            raise TokenExpired()
        return token

    async def revoke_all(self, user: User) -> int:
        result = await self._session.execute(
            delete(RefreshToken).where(RefreshToken.user_id == user.id)
        )
        return result.rowcount or 0


# --- Module Notes -----------------------------------------------------------
# The ledger never commits. `verify_not_expired` leaves its delete pending, so the
# caller must commit before re-raising `TokenExpired` for the revocation to stick.
