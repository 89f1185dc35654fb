"""Application factory and CLI entry point.

``create_app()`` builds the FastAPI application with:
  - Lifespan handler that loads the questionnaire definition once
  - CORS middleware
  - Global exception handlers (service ValueError → 404/409/403/422/400)
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

from onboarding_db.engine import dispose_engine, get_engine
from onboarding_flow.definition import QuestionnaireDefinition
from onboarding_flow.graph import StepGraph

from onboarding_server.config import ServerSettings, load_settings
from onboarding_server.errors import generic_error_handler, value_error_handler
from onboarding_server.routes import register_routes
from onboarding_server.service import SessionService

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Lifespan — runs once at startup/shutdown
# ------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load the definition and build the service at startup; dispose the pool on shutdown."""
    settings: ServerSettings = app.state.settings

    definition = QuestionnaireDefinition(settings.definition_path).load()
    app.state.definition = definition
    app.state.service = SessionService(StepGraph(definition))
    logger.info("Questionnaire definition %s loaded", definition.version)

    yield

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
        title="Onboarding Questionnaire API",
        description="Anonymous questionnaire sessions, attach and profiles",
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
    app.add_exception_handler(Exception, generic_error_handler)

    @app.get("/health")
    async def health() -> dict:
        """Readiness probe — verifies DB connectivity."""
        try:
            async with get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
            return {"status": "ok"}
        except Exception as exc:
            logger.error("Health check failed: %s", exc)
            return {"status": "error", "detail": str(exc)}

    register_routes(app)

    return app


# ------------------------------------------------------------------
# CLI entry point
# ------------------------------------------------------------------

def cli() -> None:
    """Console-script entry point: ``onboarding-server``."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "onboarding_server.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )
