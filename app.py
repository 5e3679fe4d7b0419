"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the workspace repository and services, registers routers, and
logs startup readiness.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.controllers.rules_controller import router as rules_router
from backend.controllers.search_controller import router as search_router
from backend.controllers.workspace_controller import router as workspace_router
from backend.repository.workspace_repository import WorkspaceRepository
from backend.services.generator_service import GeneratorService
from backend.services.ingestion_service import TabularIngestionService
from backend.services.workspace_service import WorkspaceService
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app() -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    The repository is the single owner of session state; every service
    receives it from here.
    """
    settings = get_settings()

    # --- Repository (in-memory session store) ---
    repository = WorkspaceRepository(settings)

    # --- Services ---
    ingestion_service = TabularIngestionService(settings)
    workspace_service = WorkspaceService(
        repository=repository,
        ingestion_service=ingestion_service,
        settings=settings,
    )
    generator_service = GeneratorService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup checks before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(workspace_router)
    app.include_router(rules_router)
    app.include_router(search_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.workspace_service = workspace_service
    app.state.generator_service = generator_service

    return app


def _startup(app: FastAPI) -> None:
    """Idempotent startup sequence. Safe to re-run on server restarts."""
    workspace_service: WorkspaceService = app.state.workspace_service
    generator_service: GeneratorService = app.state.generator_service

    logger.info("Startup: running initial validation pass")
    workspace_service.validate()

    if generator_service.available:
        logger.info("Startup: text generator configured")
    else:
        logger.warning("Startup: text generator unavailable; /rules/generate and /search/generate return 503")

    logger.info("Startup complete, system ready")


# Module-level app object for uvicorn
app = create_app()
