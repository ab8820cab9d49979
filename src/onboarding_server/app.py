"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the flow definition and the persistence backend
  - CORS middleware
  - Global exception handlers (ValueError → 404/409/400, KeyError → 404)
  - All API routes mounted under ``/api/v1``
  - A ``/health`` endpoint for readiness probes

The ``cli()`` function is the ``onboarding-server`` console-script entry point.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from onboarding_db.adapter import SqlPersistence
from onboarding_db.engine import dispose_engine, get_engine
from onboarding_db.memory import InMemoryPersistence
from onboarding_flow.interfaces import PersistenceAdapter
from onboarding_flow.registry import SchemaRegistry

from onboarding_server.config import ServerSettings, load_settings
from onboarding_server.errors import (
    generic_error_handler,
    key_error_handler,
    value_error_handler,
)
from onboarding_server.routes import register_routes
from onboarding_server.sessions import SessionRegistry

logger = logging.getLogger(__name__)


def build_persistence(settings: ServerSettings) -> PersistenceAdapter:
    """Pick the persistence adapter named by ``persistence_backend``."""
    if settings.persistence_backend == "memory":
        return InMemoryPersistence()
    return SqlPersistence()


# ------------------------------------------------------------------
# Lifespan: runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialise shared resources at startup, tear down on shutdown.

    Startup:
      1. Load the flow YAML into a ``SchemaRegistry``
      2. Build the persistence adapter and the per-user ``SessionRegistry``
      3. Stash them on ``app.state`` for dependency injection

    Shutdown:
      1. Abandon live runs so their progress is flushed
      2. Dispose the database engine's connection pool (postgres backend)
    """
    settings: ServerSettings = app.state.settings

    registry = SchemaRegistry(settings.schema_path)
    registry.load()

    persistence = build_persistence(settings)
    sessions = SessionRegistry(
        registry,
        persistence,
        idle_timeout_minutes=settings.idle_timeout_minutes,
    )

    app.state.registry = registry
    app.state.persistence = persistence
    app.state.sessions = sessions
    logger.info("Onboarding server ready (persistence=%s)", settings.persistence_backend)

    yield

    await sessions.close_all()
    if settings.persistence_backend == "postgres":
        await dispose_engine()
        logger.info("Database engine disposed")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------

def create_app(settings: ServerSettings | None = None) -> FastAPI:
    """Build and return the configured FastAPI application."""
    if settings is None:
        settings = load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Onboarding API Server",
        description="REST API for the conversational onboarding flow",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Read by the lifespan handler and get_user_id
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(KeyError, key_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # --- Health check (outside /api/v1 prefix) ---
    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity on the postgres backend."""
        if settings.persistence_backend != "postgres":
            return {"status": "ok", "persistence": settings.persistence_backend}
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok", "persistence": "postgres"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    register_routes(app)

    return app


# ------------------------------------------------------------------
# Module-level ASGI export (for uvicorn onboarding_server.app:app)
# ------------------------------------------------------------------
app = create_app()


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``onboarding-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "onboarding_server.app:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
