"""
credgate.auth.bearer

Bearer scheme parsing.

Responsibilities:
- Pull the token out of an `Authorization: Bearer <token>` header value for the
  middleware and the refresh-token/logout routes.
"""

from __future__ import annotations

BEARER_PREFIX = "Bearer "


def parse_bearer(header: str | None) -> str | None:
    """Return the token from an `Authorization: Bearer <token>` value, else None."""
    if header is None or not header.startswith(BEARER_PREFIX):
        return None
    token = header[len(BEARER_PREFIX) :].strip()
    return token or None
