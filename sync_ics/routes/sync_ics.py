"""
Calendar sync endpoints.

POST /sync-ics runs a sync for one property and always answers 200 with the
SyncReport once the run completes, including when some sources failed. Only a
malformed request (422) or an unexpected failure outside the pipeline (500)
produces an error response.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from sync_ics.config import SyncSettings
from sync_ics.db.engine import check_engine_health
from sync_ics.dependencies import get_db_engine, get_orchestrator, get_sync_settings
from sync_ics.schemas.sync import SyncRequest
from sync_ics.services.sync import CalendarSyncOrchestrator
from sync_ics.utils.datetime import utc_now

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/sync-ics")
def sync_ics(
    payload: SyncRequest,
    orchestrator: CalendarSyncOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """
    Sync calendar feeds into the bookings of one property.

    Args:
        payload: property_id plus optional sources and platform filter
        orchestrator: Sync orchestrator (injected)

    Returns:
        dict: SyncReport with camelCase keys
    """
    try:
        report = orchestrator.sync(
            payload.property_id, sources=payload.sources, platform=payload.platform
        )
        return report.model_dump(by_alias=True, mode="json")

    except HTTPException:
        raise
    except Exception as e:
        logger.exception("sync_request_failed", property_id=str(payload.property_id), error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error during ICS sync")


@router.get("/sync-ics")
def sync_ics_status(
    health: bool = Query(False, description="Report configuration health instead of usage"),
    db_engine: Engine = Depends(get_db_engine),
    settings: SyncSettings = Depends(get_sync_settings),
) -> JSONResponse:
    """
    Health probe (?health=true) or usage description. Never runs a sync.

    Returns 503 when health is requested and the bookings store is unreachable.

    Example:
        >>> GET /sync-ics?health=true
        {"status": "healthy", "environment": {"hasAirbnbUrl": true, ...}}
    """
    if not health:
        return JSONResponse(
            content={
                "message": "ICS Sync API",
                "methods": ["POST", "GET"],
                "usage": {
                    "POST": "Sync calendar data for a property",
                    "GET": "Health check (add ?health=true parameter)",
                },
            }
        )

    configured = {source.platform: bool(source.url) for source in settings.default_sources}
    database_ok = check_engine_health(db_engine)
    environment = {
        "hasAirbnbUrl": configured.get("airbnb", False),
        "hasVrboUrl": configured.get("vrbo", False),
        "hasBookingUrl": configured.get("booking", False),
        "hasDatabase": database_ok,
    }

    if not database_ok:
        logger.error("sync_health_check_failed", reason="database_not_accessible")

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content={
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": utc_now().isoformat(),
            "environment": environment,
        },
    )
