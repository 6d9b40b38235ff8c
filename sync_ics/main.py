# sync_ics/main.py

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sync_ics.config import ALLOWED_ORIGINS
from sync_ics.logging_config import setup_logging
from sync_ics.middleware import RequestIDMiddleware
from sync_ics.routes.health import router as health_router
from sync_ics.routes.metrics import router as metrics_router
from sync_ics.routes.sync_ics import router as sync_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="ICS Sync API",
    description="Synchronizes booking platform calendar feeds into property bookings",
    version="1.0.0",
)

app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(sync_router, tags=["Sync"])


@app.on_event("startup")
def startup_event() -> None:
    """Log the feeds configured as sync defaults."""
    from sync_ics.dependencies import get_sync_settings

    settings = get_sync_settings()
    logger.info(
        "FastAPI application starting up...",
        default_sources=[source.platform for source in settings.configured_sources()],
        deadline=settings.deadline,
        max_concurrent_sources=settings.max_concurrent_sources,
    )
