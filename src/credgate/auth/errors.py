"""
credgate.auth.errors

Authentication error taxonomy.

Each error carries the HTTP status and a stable machine-readable code; the API
layer renders them in `api.errors`.
"""

from __future__ import annotations

from typing import Any

from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_409_CONFLICT,
)


class AuthError(Exception):
    status_code: int = HTTP_401_UNAUTHORIZED
    code: str = "auth_error"
    message: str = "Authentication error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message

    def payload(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(AuthError):
    status_code = HTTP_400_BAD_REQUEST
    code = "validation_error"
    message = "Validation failed"

    def __init__(self, fields: dict[str, str], message: str | None = None) -> None:
        super().__init__(message)
        self.fields = fields

    def payload(self) -> dict[str, Any]:
        return {**super().payload(), "fields": self.fields}


class Conflict(AuthError):
    status_code = HTTP_409_CONFLICT
    code = "conflict"
    message = "Username or email already registered"


class AuthenticationFailed(AuthError):
    # Subclasses share code and message so callers can't tell which check failed.
    code = "bad_credentials"
    message = "Invalid username/email or password"

    def __init__(self) -> None:
        super().__init__()


class PrincipalNotFound(AuthenticationFailed):
    pass


class BadCredentials(AuthenticationFailed):
    pass


class TokenInvalid(AuthError):
    code = "token_invalid"
    message = "Token expired or invalid"


class TokenExpired(AuthError):
    code = "token_expired"
    message = "Refresh token is expired. Please login again"


class TokenNotFound(AuthError):
    code = "token_not_found"
    message = "Refresh token not found"
