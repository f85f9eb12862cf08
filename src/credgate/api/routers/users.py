"""
credgate.api.routers.users

Protected principal endpoints.

Responsibilities:
- Return the identity the bearer middleware attached (`/v1/users/me`).
- Admin-only principal lookup by username.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_404_NOT_FOUND

from credgate.api.deps import db_session
from credgate.auth.deps import require_identity, require_roles
from credgate.auth.models import AuthenticatedIdentity, Role
from credgate.db.repositories.users import UserRepo

router = APIRouter(prefix="/v1/users", tags=["users"])


class PrincipalResponse(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    roles: list[str]


@router.get("/me", response_model=PrincipalResponse)
async def me(identity: AuthenticatedIdentity = Depends(require_identity)) -> PrincipalResponse:
    p = identity.principal
    return PrincipalResponse(id=p.id, username=p.username, email=p.email, roles=sorted(p.roles))


@router.get(
    "/{username}",
    response_model=PrincipalResponse,
    dependencies=[Depends(require_roles(Role.admin.value))],
)
async def get_user(
    username: str,
    session: AsyncSession = Depends(db_session),
) -> PrincipalResponse:
    user = await UserRepo(session).find_by_username(username)
    if user is None:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="User not found")
    return PrincipalResponse(
        id=user.id, username=user.username, email=user.email, roles=sorted(user.roles)
    )
