"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.services.generator_service import GeneratorService
from backend.services.ingestion_service import TabularIngestionService
from backend.services.workspace_service import WorkspaceService
from backend.utils.config import get_settings


def get_workspace_service(request: Request) -> WorkspaceService:
    service = getattr(request.app.state, "workspace_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            settings = get_settings()
            service = WorkspaceService(
                repository=repository,
                ingestion_service=TabularIngestionService(settings),
                settings=settings,
            )
            request.app.state.workspace_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workspace service is not initialized",
        )
    return service


def get_generator_service(request: Request) -> GeneratorService:
    service = getattr(request.app.state, "generator_service", None)
    if service is None:
        service = GeneratorService(settings=get_settings())
        request.app.state.generator_service = service
    return service