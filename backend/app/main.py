"""
FastAPI Application Entry Point.

This is the main application file for the Area Manager Checklist backend.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from backend.app.core.config import settings
from backend.app.api.router import router as app_router
from backend.app.core.exceptions import register_exception_handlers
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.db import session as db_session
from backend.app.db.session import Base
from backend.app.services.document_numbers import ensure_counter
from backend.app.services.session_store import run_periodic_cleanup

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.session import AuthSession
from backend.app.models.store import Store, StoreAssignment
from backend.app.models.question import Question
from backend.app.models.checklist import Checklist, ChecklistAnswer
from backend.app.models.document_counter import DocumentCounter
from backend.app.models.setting import AppSetting
from backend.app.models.audit_log import AuditLog

logger = logging.getLogger("checklist")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and the database engine.
    2. Creates tables and the document counter row.
    3. Runs the expired-session sweep in the background until shutdown.
    """
    configure_logging()
    session_factory = db_session.init_engine()

    if settings.auto_create_tables:
        async with db_session.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as db:
        await ensure_counter(db)

    cleanup_task = asyncio.create_task(
        run_periodic_cleanup(session_factory, settings.session_cleanup_interval_seconds)
    )
    logger.info(
        "%s started (%s); session sweep every %ss",
        settings.app_name, settings.environment, settings.session_cleanup_interval_seconds,
    )

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    await db_session.dispose_engine()
    logger.info("%s stopped", settings.app_name)


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    description="Store audit checklists for area managers",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
register_exception_handlers(app)

app.include_router(app_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "environment": settings.environment,
    }


@app.get("/", tags=["Root"])
async def root():
    """Send browsers to the dashboard (which sends anonymous users to login)."""
    return RedirectResponse("/dashboard", status_code=302)
