"""Admin workflow dashboard: status counts and the global transition log."""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.admin_deps import require_admin
from app.deps import _safe_error, get_workflow_service
from app.models.workflow_models import (
    WorkflowHistoryResponse,
    WorkflowLogResponse,
    WorkflowStatsResponse,
)
from app.services.workflow_service import WorkflowService
from app.workflow.policy import TriggerType

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/admin/workflow", tags=["admin-workflow"])


@router.get("/stats", response_model=WorkflowStatsResponse, response_model_by_alias=True)
async def get_workflow_stats(
    service: WorkflowService = Depends(get_workflow_service),
    _admin: dict = Depends(require_admin),
):
    """Problem counts per status and transitions in the last 7 days."""
    try:
        stats = await service.get_workflow_stats()
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching workflow stats", e),
        ) from e
    return WorkflowStatsResponse(**stats)


@router.get(
    "/history", response_model=WorkflowHistoryResponse, response_model_by_alias=True
)
async def get_workflow_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    trigger_type: Optional[TriggerType] = Query(None, alias="triggerType"),
    problem_id: Optional[uuid.UUID] = Query(None, alias="problemId"),
    service: WorkflowService = Depends(get_workflow_service),
    _admin: dict = Depends(require_admin),
):
    """Newest-first workflow log across all problems."""
    try:
        history = await service.list_workflow_history(
            page=page,
            limit=limit,
            trigger_type=trigger_type.value if trigger_type else None,
            problem_id=problem_id,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching workflow history", e),
        ) from e

    return WorkflowHistoryResponse(
        entries=[WorkflowLogResponse.model_validate(e) for e in history["entries"]],
        total=history["total"],
        page=history["page"],
        limit=history["limit"],
    )
