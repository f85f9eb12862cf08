"""
credgate.auth.models

Auth domain models.

Responsibilities:
- Define verified token claims (`TokenClaims`) and the tagged verification
  result returned by the codec.
- Define the authenticated identity (`Principal`, `AuthenticatedIdentity`)
  attached to a request by the middleware.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class Role(enum.StrEnum):
    user = "USER"
    admin = "ADMIN"


DEFAULT_ROLES: frozenset[str] = frozenset({Role.user.value})


@dataclass(frozen=True, slots=True)
class TokenClaims:
    subject: str
    issued_at: datetime
    expires_at: datetime
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def roles(self) -> frozenset[str]:
        raw = self.extra.get("roles", [])
        return frozenset(str(r) for r in raw) if isinstance(raw, list) else frozenset()


class TokenFailure(enum.StrEnum):
    # Kept for logs only; never rendered to clients.
    malformed = "malformed"
    bad_signature = "bad_signature"
    expired = "expired"
    claims = "claims"


@dataclass(frozen=True, slots=True)
class TokenOk:
    claims: TokenClaims


@dataclass(frozen=True, slots=True)
class TokenErr:
    reason: TokenFailure


TokenResult = TokenOk | TokenErr


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity, snapshotted from the credential store.
    """

    id: uuid.UUID
    username: str
    email: str
    roles: frozenset[str]

    @property
    def is_admin(self) -> bool:
        return Role.admin.value in self.roles


@dataclass(frozen=True, slots=True)
class AuthenticatedIdentity:
    principal: Principal
    claims: TokenClaims


# --- Module Notes -----------------------------------------------------------
# Keep these models free of ORM types; they cross the middleware/handler boundary.
