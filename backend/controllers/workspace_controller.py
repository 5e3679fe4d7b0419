"""Controller layer for dataset upload, editing and validation endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_workspace_service
from backend.domain.models import DatasetKind, ValidationError
from backend.services.ingestion_service import TabularIngestionError
from backend.services.workspace_service import WorkspaceService, WorkspaceValidationError
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(tags=["workspace"])


class DatasetPayload(BaseModel):
    records: list[dict[str, Any]]


class ValidationErrorResponse(BaseModel):
    entityId: str
    field: str
    message: str


class ValidationReportResponse(BaseModel):
    error_count: int = Field(ge=0)
    errors: list[ValidationErrorResponse]


class DatasetLoadResponse(ValidationReportResponse):
    dataset: DatasetKind
    records_loaded: int = Field(ge=0)


class DatasetResponse(BaseModel):
    dataset: DatasetKind
    records: list[dict[str, Any]]
    error_fields: list[list[str]]


class CellEditRequest(BaseModel):
    row_index: int = Field(ge=0)
    field: str = Field(min_length=1)
    value: str | int | float | None = None


class CellEditResponse(ValidationReportResponse):
    record: dict[str, Any]


class CellErrorsResponse(BaseModel):
    entityId: str
    field: str
    messages: list[str]


class DatasetErrorsResponse(BaseModel):
    dataset: DatasetKind
    cells: list[CellErrorsResponse]


class SchemasResponse(BaseModel):
    clients: list[str]
    workers: list[str]
    tasks: list[str]


class HealthResponse(BaseModel):
    status: str
    app_name: str
    app_version: str


def _report(errors: list[ValidationError]) -> dict[str, Any]:
    return {
        "error_count": len(errors),
        "errors": [error.to_dict() for error in errors],
    }


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        app_name=settings.app_name,
        app_version=settings.app_version,
    )


@router.get("/datasets/{kind}", response_model=DatasetResponse, status_code=status.HTTP_200_OK)
async def get_dataset(
    kind: DatasetKind,
    service: WorkspaceService = Depends(get_workspace_service),
) -> DatasetResponse:
    """Rows plus, per row, the columns to highlight from the last validation pass."""
    return DatasetResponse(
        dataset=kind,
        records=service.get_dataset(kind),
        error_fields=service.flagged_fields(kind),
    )


@router.put("/datasets/{kind}", response_model=DatasetLoadResponse, status_code=status.HTTP_200_OK)
async def load_dataset(
    kind: DatasetKind,
    payload: DatasetPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> DatasetLoadResponse:
    """Replace one dataset with JSON rows and re-run validation."""
    try:
        errors = service.load_dataset(kind, payload.records)
        return DatasetLoadResponse(
            dataset=kind,
            records_loaded=len(payload.records),
            **_report(errors),
        )
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected dataset load failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load dataset",
        ) from exc


@router.post(
    "/datasets/{kind}/upload",
    response_model=DatasetLoadResponse,
    status_code=status.HTTP_200_OK,
)
async def upload_dataset(
    kind: DatasetKind,
    file: UploadFile = File(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> DatasetLoadResponse:
    """Parse a CSV/XLSX upload, replace the dataset and re-run validation."""
    content = await file.read()
    try:
        errors = service.upload_dataset(kind, file.filename or "", content)
        return DatasetLoadResponse(
            dataset=kind,
            records_loaded=len(service.get_dataset(kind)),
            **_report(errors),
        )
    except TabularIngestionError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected dataset upload failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to upload dataset",
        ) from exc


@router.delete(
    "/datasets/{kind}",
    response_model=ValidationReportResponse,
    status_code=status.HTTP_200_OK,
)
async def remove_dataset(
    kind: DatasetKind,
    service: WorkspaceService = Depends(get_workspace_service),
) -> ValidationReportResponse:
    errors = service.remove_dataset(kind)
    return ValidationReportResponse(**_report(errors))


@router.patch(
    "/datasets/{kind}/cells",
    response_model=CellEditResponse,
    status_code=status.HTTP_200_OK,
)
async def edit_cell(
    kind: DatasetKind,
    payload: CellEditRequest,
    service: WorkspaceService = Depends(get_workspace_service),
) -> CellEditResponse:
    """Edit one cell in place; the whole workspace is revalidated."""
    try:
        record, errors = service.edit_cell(kind, payload.row_index, payload.field, payload.value)
        return CellEditResponse(record=record, **_report(errors))
    except WorkspaceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc


@router.get("/validation", response_model=ValidationReportResponse, status_code=status.HTTP_200_OK)
async def validate_workspace(
    service: WorkspaceService = Depends(get_workspace_service),
) -> ValidationReportResponse:
    """Full re-scan of the current datasets."""
    try:
        return ValidationReportResponse(**_report(service.validate()))
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected validation failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to validate workspace",
        ) from exc


@router.get(
    "/validation/{kind}",
    response_model=DatasetErrorsResponse,
    status_code=status.HTTP_200_OK,
)
async def dataset_errors(
    kind: DatasetKind,
    service: WorkspaceService = Depends(get_workspace_service),
) -> DatasetErrorsResponse:
    """Errors of the last validation pass, grouped per highlighted cell."""
    cells = [
        CellErrorsResponse(entityId=entity_id, field=field, messages=messages)
        for (entity_id, field), messages in service.errors_for(kind).items()
    ]
    return DatasetErrorsResponse(dataset=kind, cells=cells)


@router.get("/schemas", response_model=SchemasResponse, status_code=status.HTTP_200_OK)
async def schemas(
    service: WorkspaceService = Depends(get_workspace_service),
) -> SchemasResponse:
    return SchemasResponse(**service.schemas())
