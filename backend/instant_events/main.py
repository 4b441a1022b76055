"""Composition Root: wires settings, logging, database, store and service.

Invariants:
    - The only place that constructs DatabaseSessionManager and SqlDocumentStore
    - One store handle per process, passed explicitly (no ambient global client)
    - Engine disposed on exit, even when the body raises

Design Decisions:
    - Lifespan as an async context manager: hosts (web app, worker, script) enter
      it once at startup and use the yielded InstantEventService
    - Schema is managed by alembic, not created here
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from instant_events.config import Settings, get_settings
from instant_events.infrastructure.database import DatabaseSessionManager
from instant_events.infrastructure.document_store import SqlDocumentStore
from instant_events.infrastructure.observability import setup_logging
from instant_events.services.instant_event_service import InstantEventService

logger = logging.getLogger(__name__)


def build_store(settings: Settings, db: DatabaseSessionManager) -> SqlDocumentStore:
    return SqlDocumentStore(
        db,
        max_attempts=settings.transaction_max_attempts,
        base_delay_ms=settings.transaction_base_delay_ms,
        max_delay_ms=settings.transaction_max_delay_ms,
    )


@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[InstantEventService]:
    """Startup/shutdown lifecycle."""
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = DatabaseSessionManager(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    service = InstantEventService(build_store(settings, db))
    logger.info("Instant event core started")
    try:
        yield service
    finally:
        await db.dispose()
        logger.info("Instant event core shut down")
