"""Controller layer for structured and natural-language dataset search."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_generator_service, get_workspace_service
from backend.domain.filters import FilterValidationError, filter_to_dict
from backend.domain.models import DatasetKind
from backend.services.generator_service import (
    GenerationFailure,
    GeneratorDependencyError,
    GeneratorService,
)
from backend.services.workspace_service import SearchResult, WorkspaceService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["search"])


class FilterClauseResponse(BaseModel):
    field: str
    operator: str
    value: str | int | float


class SearchResponse(BaseModel):
    target: DatasetKind
    filters: list[FilterClauseResponse]
    total_records: int = Field(ge=0)
    matched_count: int = Field(ge=0)
    records: list[dict[str, Any]]


class GenerateSearchRequest(BaseModel):
    query: str = Field(min_length=1)


def _search_response(result: SearchResult) -> SearchResponse:
    wire_filter = filter_to_dict(result.filter)
    return SearchResponse(
        target=result.filter.target,
        filters=wire_filter["filters"],
        total_records=result.total_records,
        matched_count=len(result.records),
        records=[dict(record) for record in result.records],
    )


@router.post("/search", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def search(
    payload: dict[str, Any] = Body(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> SearchResponse:
    """Apply a ``{target, filters}`` object to the named dataset."""
    try:
        return _search_response(service.search(payload))
    except FilterValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


@router.post("/search/generate", response_model=SearchResponse, status_code=status.HTTP_200_OK)
async def generate_search(
    payload: GenerateSearchRequest,
    service: WorkspaceService = Depends(get_workspace_service),
    generator: GeneratorService = Depends(get_generator_service),
) -> SearchResponse:
    """Turn a query into a filter using the current column names, then apply it."""
    try:
        result = generator.generate_filter(payload.query, service.schemas())
    except GeneratorDependencyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    if isinstance(result, GenerationFailure):
        logger.warning("Filter generation failed: %s", result.reason)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.reason,
        )

    try:
        return _search_response(service.search(result.payload))
    except FilterValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Generated filter is invalid: {exc}",
        ) from exc
