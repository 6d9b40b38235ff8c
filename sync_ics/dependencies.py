"""
FastAPI dependency injection providers.

Routes receive the database engine, the sync settings and the orchestrator
through these providers. Tests override them with app.dependency_overrides to
inject an in-memory database, short deadlines or a fake feed fetcher.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.engine import Engine

from sync_ics.config import SyncSettings
from sync_ics.db.engine import engine
from sync_ics.services.sync import CalendarSyncOrchestrator


def get_db_engine() -> Generator[Engine, None, None]:
    """
    Provide database engine for dependency injection.

    Yields:
        Engine: SQLAlchemy database engine

    Testing Example:
        >>> mock_engine = Mock(spec=Engine)
        >>> app.dependency_overrides[get_db_engine] = lambda: mock_engine
    """
    yield engine


@lru_cache(maxsize=1)
def get_sync_settings() -> SyncSettings:
    """Process-wide sync settings, read from the environment once."""
    return SyncSettings.from_env()


def get_orchestrator(
    db_engine: Engine = Depends(get_db_engine),
    settings: SyncSettings = Depends(get_sync_settings),
) -> CalendarSyncOrchestrator:
    """
    Build the sync orchestrator for a request.

    Args:
        db_engine: Engine from get_db_engine
        settings: Settings from get_sync_settings

    Returns:
        CalendarSyncOrchestrator: Orchestrator wired to the real feed fetcher
    """
    return CalendarSyncOrchestrator(db_engine, settings)
