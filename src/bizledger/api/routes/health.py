"""Service status endpoints for orchestration probes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bizledger.api.dependencies import AppSettings, DbSession
from bizledger.api.schemas import ServiceStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database status check failed", exc_info=True)
        return False
    return True


@router.get("/health", response_model=ServiceStatusResponse)
async def service_status(db: DbSession, settings: AppSettings) -> ServiceStatusResponse:
    """Report database reachability; a down database degrades, never fails, this call."""
    reachable = await database_reachable(db)
    return ServiceStatusResponse(
        status="healthy" if reachable else "degraded",
        database="healthy" if reachable else "unhealthy",
        version=settings.app_version,
        reconciliation_mode=settings.reconciliation_mode,
        checked_at=datetime.now(timezone.utc),
    )


@router.get("/ready")
async def ready(db: DbSession) -> JSONResponse:
    """Accept traffic only while the database answers."""
    if not await database_reachable(db):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return JSONResponse(content={"status": "ready"})


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "alive"}
