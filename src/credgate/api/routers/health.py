"""
credgate.api.routers.health

Liveness (`/healthz`) and readiness (`/readyz`) probes.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from credgate.api.deps import db_session, settings_dep
from credgate.settings import Settings

router = APIRouter()

PROBE_PATHS = ("/healthz", "/readyz")


@router.get("/healthz")
async def healthz(settings: Settings = Depends(settings_dep)) -> dict[str, str]:
    return {"status": "ok", "service": settings.service_name}


@router.get("/readyz")
async def readyz(session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    # Credential store and refresh token ledger both live behind this connection.
    await session.execute(text("SELECT 1"))
    return {"status": "ready"}
