"""
credgate.auth.deps

FastAPI dependency functions for protected routes.

Responsibilities:
- Read the identity attached by `BearerAuthMiddleware`.
- Enforce role membership via reusable dependency factories.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from starlette.status import HTTP_401_UNAUTHORIZED, HTTP_403_FORBIDDEN

from credgate.auth.models import AuthenticatedIdentity


def get_identity(request: Request) -> AuthenticatedIdentity | None:
    return getattr(request.state, "identity", None)


def require_identity(
    identity: AuthenticatedIdentity | None = Depends(get_identity),
) -> AuthenticatedIdentity:
    if identity is None:
        raise HTTPException(
            status_code=HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


def require_roles(*required: str):
    required_set = frozenset(required)

    def _dep(identity: AuthenticatedIdentity = Depends(require_identity)) -> AuthenticatedIdentity:
        # Admins pass every role check.
        if identity.principal.is_admin:
            return identity
        if not required_set.issubset(identity.principal.roles):
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Insufficient role")
        return identity

    return _dep
