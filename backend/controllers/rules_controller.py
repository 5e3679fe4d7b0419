"""Controller layer for allocation rules and prioritization weights."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_generator_service, get_workspace_service
from backend.domain.models import Rule
from backend.domain.rules import RuleValidationError, describe_rule, rule_to_dict
from backend.services.generator_service import (
    GenerationFailure,
    GeneratorDependencyError,
    GeneratorService,
)
from backend.services.workspace_service import WorkspaceService, WorkspaceValidationError
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["rules"])


class RuleResponse(BaseModel):
    rule: dict[str, Any]
    description: str


class RuleListResponse(BaseModel):
    rules: list[RuleResponse]


class ClearRulesResponse(BaseModel):
    removed: int = Field(ge=0)


class RuleOptionsResponse(BaseModel):
    client_groups: list[str]
    worker_groups: list[str]
    task_ids: list[str]


class GenerateRuleRequest(BaseModel):
    rule_text: str = Field(min_length=1)


class WeightsPayload(BaseModel):
    weights: dict[str, int]


def _rule_response(rule: Rule) -> RuleResponse:
    return RuleResponse(rule=rule_to_dict(rule), description=describe_rule(rule))


@router.get("/rules", response_model=RuleListResponse, status_code=status.HTTP_200_OK)
async def list_rules(
    service: WorkspaceService = Depends(get_workspace_service),
) -> RuleListResponse:
    return RuleListResponse(rules=[_rule_response(rule) for rule in service.list_rules()])


@router.post("/rules", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def add_rule(
    payload: dict[str, Any] = Body(...),
    service: WorkspaceService = Depends(get_workspace_service),
) -> RuleResponse:
    """Append one rule after a structural shape check."""
    try:
        return _rule_response(service.add_rule(payload))
    except RuleValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


@router.delete("/rules", response_model=ClearRulesResponse, status_code=status.HTTP_200_OK)
async def clear_rules(
    service: WorkspaceService = Depends(get_workspace_service),
) -> ClearRulesResponse:
    return ClearRulesResponse(removed=service.clear_rules())


@router.get("/rules/options", response_model=RuleOptionsResponse, status_code=status.HTTP_200_OK)
async def rule_options(
    service: WorkspaceService = Depends(get_workspace_service),
) -> RuleOptionsResponse:
    return RuleOptionsResponse(**service.rule_options())


@router.post(
    "/rules/generate",
    response_model=RuleResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_rule(
    payload: GenerateRuleRequest,
    service: WorkspaceService = Depends(get_workspace_service),
    generator: GeneratorService = Depends(get_generator_service),
) -> RuleResponse:
    """Turn a sentence into a rule and append it; any failure leaves the rule list untouched."""
    try:
        result = generator.generate_rule(payload.rule_text)
    except GeneratorDependencyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    if isinstance(result, GenerationFailure):
        logger.warning("Rule generation failed: %s", result.reason)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=result.reason,
        )

    try:
        return _rule_response(service.add_rule(result.payload))
    except RuleValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Generated rule is invalid: {exc}",
        ) from exc


@router.get("/weights", response_model=WeightsPayload, status_code=status.HTTP_200_OK)
async def get_weights(
    service: WorkspaceService = Depends(get_workspace_service),
) -> WeightsPayload:
    return WeightsPayload(weights=service.get_weights())


@router.put("/weights", response_model=WeightsPayload, status_code=status.HTTP_200_OK)
async def set_weights(
    payload: WeightsPayload,
    service: WorkspaceService = Depends(get_workspace_service),
) -> WeightsPayload:
    """Update any subset of weights; nothing is applied if one entry is invalid."""
    try:
        return WeightsPayload(weights=service.set_weights(payload.weights))
    except WorkspaceValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
