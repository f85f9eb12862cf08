"""
credgate.api.errors

Exception handlers that render the auth error taxonomy as JSON.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from credgate.auth.errors import AuthError, ValidationError
from credgate.observability.logging import get_logger

log = get_logger(__name__)


def _request_field_errors(exc: RequestValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        fields.setdefault(loc[0] if loc else "body", err.get("msg", "invalid"))
    return fields


def install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthError)
    async def _auth_error(request: Request, exc: AuthError) -> JSONResponse:
        log.info("auth_error", code=exc.code, status=exc.status_code)
        return JSONResponse(exc.payload(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        err = ValidationError(_request_field_errors(exc))
        return JSONResponse(err.payload(), status_code=err.status_code)
