"""Workflow router: vote-milestone status updates and workflow status view.

Endpoints:
- POST /api/v1/workflow/status-update   -- milestone or admin-override transition
- GET  /api/v1/workflow/status          -- status, next milestone, history
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from app.admin_deps import assert_admin
from app.auth import get_optional_user
from app.deps import (
    _safe_error,
    get_workflow_repository,
    get_workflow_service,
    workflow_http_error,
)
from app.models.queue_models import QueueItemResponse
from app.models.workflow_models import (
    ProblemWorkflowState,
    StatusUpdateRequest,
    TransitionResponse,
    WorkflowInfoResponse,
    WorkflowLogResponse,
)
from app.repositories import SqlWorkflowRepository
from app.services.workflow_service import WorkflowService
from app.workflow.errors import WorkflowError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/workflow", tags=["workflow"])


# ---------------------------------------------------------------------------
# POST  /workflow/status-update
# ---------------------------------------------------------------------------


@router.post(
    "/status-update",
    response_model=TransitionResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
async def update_problem_status(
    request: Request,
    body: StatusUpdateRequest,
    current_user: Optional[dict[str, Any]] = Depends(get_optional_user),
    repo: SqlWorkflowRepository = Depends(get_workflow_repository),
    service: WorkflowService = Depends(get_workflow_service),
):
    """Apply a milestone transition or, for admins, a manual override.

    The milestone variant is called by the voting flow after each vote
    tally change.  The override variant requires an admin user.

    Raises:
        HTTPException 400: Invalid input or invalid transition.
        HTTPException 401/403: Override without an admin user.
        HTTPException 404: Problem not found.
        HTTPException 409: Concurrent status change.
    """
    actor_id: Optional[uuid.UUID] = None
    if body.admin_override:
        admin = await assert_admin(request, current_user, repo, allow_service_role=False)
        actor_id = uuid.UUID(str(admin["id"]))

    try:
        result = await service.update_status(
            problem_id=body.problem_id,
            new_vote_count=body.new_vote_count,
            admin_override=body.admin_override,
            target_status=body.target_status,
            reason=body.reason,
            actor_id=actor_id,
        )
    except WorkflowError as e:
        logger.info(
            "Status update rejected for problem %s (%s): %s",
            body.problem_id,
            body.variant,
            e,
        )
        raise workflow_http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("updating problem status", e),
        ) from e

    return TransitionResponse(**result.to_dict())


# ---------------------------------------------------------------------------
# GET  /workflow/status
# ---------------------------------------------------------------------------


@router.get(
    "/status",
    response_model=WorkflowInfoResponse,
    response_model_by_alias=True,
)
async def get_workflow_status(
    problem_id: uuid.UUID = Query(..., alias="problemId", description="Problem id"),
    service: WorkflowService = Depends(get_workflow_service),
):
    """Current status, next milestone, queue info, and history for a problem."""
    try:
        info = await service.get_workflow_info(problem_id)
    except WorkflowError as e:
        raise workflow_http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("fetching workflow status", e),
        ) from e

    problem = dict(info["problem"])
    queue_item = problem.pop("development_queue_info")
    return WorkflowInfoResponse(
        problem=ProblemWorkflowState(
            **problem,
            development_queue_info=(
                QueueItemResponse.model_validate(queue_item) if queue_item else None
            ),
        ),
        workflow_history=[
            WorkflowLogResponse.model_validate(entry)
            for entry in info["workflow_history"]
        ],
        status_thresholds=info["status_thresholds"],
        valid_transitions=info["valid_transitions"],
    )
