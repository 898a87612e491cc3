"""Development queue router.

Endpoints:
- GET    /api/v1/workflow/development-queue   -- paginated queue + statistics
- POST   /api/v1/workflow/development-queue   -- queue a problem (admin)
- PATCH  /api/v1/workflow/development-queue   -- edit or move an item (admin)
- DELETE /api/v1/workflow/development-queue   -- remove an item (admin)
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.admin_deps import require_admin
from app.deps import _safe_error, get_queue_service, workflow_http_error
from app.models.queue_models import (
    AddToQueueRequest,
    QueueItemMutationResponse,
    QueueItemResponse,
    QueueListResponse,
    QueuePagination,
    QueueStatistics,
    UpdateQueueRequest,
)
from app.services.development_queue_service import DevelopmentQueueService
from app.workflow.errors import WorkflowError
from app.workflow.policy import QueuePriority, QueueStatus

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/workflow", tags=["development-queue"])


# ---------------------------------------------------------------------------
# GET  /workflow/development-queue
# ---------------------------------------------------------------------------


@router.get(
    "/development-queue",
    response_model=QueueListResponse,
    response_model_by_alias=True,
)
async def list_development_queue(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=50, description="Items per page"),
    priority: Optional[QueuePriority] = Query(None, description="Filter by priority"),
    status_filter: Optional[QueueStatus] = Query(
        None, alias="status", description="Filter by queue status"
    ),
    service: DevelopmentQueueService = Depends(get_queue_service),
):
    """List queue items in position order with per-priority/status counts."""
    try:
        data = await service.list_queue(
            page=page,
            limit=limit,
            priority=priority.value if priority else None,
            status=status_filter.value if status_filter else None,
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("listing development queue", e),
        ) from e

    return QueueListResponse(
        queue=[QueueItemResponse.model_validate(item) for item in data["queue"]],
        pagination=QueuePagination(**data["pagination"]),
        statistics=QueueStatistics(**data["statistics"]),
    )


# ---------------------------------------------------------------------------
# POST  /workflow/development-queue
# ---------------------------------------------------------------------------


@router.post(
    "/development-queue",
    response_model=QueueItemMutationResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def add_to_development_queue(
    body: AddToQueueRequest,
    service: DevelopmentQueueService = Depends(get_queue_service),
    admin: dict = Depends(require_admin),
):
    """Queue an ``In Development`` problem by hand."""
    try:
        item = await service.enqueue(
            body.problem_id,
            priority=body.priority,
            added_by=body.added_by or str(admin["id"]),
            estimated_hours=body.estimated_hours,
            notes=body.notes,
        )
    except WorkflowError as e:
        raise workflow_http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("adding to development queue", e),
        ) from e

    return QueueItemMutationResponse(
        queue_item=QueueItemResponse.model_validate(item),
        message=f"Problem added to development queue at position {item.queue_position}",
    )


# ---------------------------------------------------------------------------
# PATCH  /workflow/development-queue
# ---------------------------------------------------------------------------


@router.patch(
    "/development-queue",
    response_model=QueueItemMutationResponse,
    response_model_by_alias=True,
)
async def update_development_queue_item(
    body: UpdateQueueRequest,
    service: DevelopmentQueueService = Depends(get_queue_service),
    admin: dict = Depends(require_admin),
):
    """Edit a queue item; ``queuePosition`` moves it within the queue."""
    changes = body.model_dump(exclude={"problem_id"}, exclude_none=True)
    if not changes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update",
        )

    try:
        item = await service.update_item(body.problem_id, changes)
    except WorkflowError as e:
        raise workflow_http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("updating development queue item", e),
        ) from e

    logger.info("Queue item for problem %s updated by %s", body.problem_id, admin["id"])
    return QueueItemMutationResponse(
        queue_item=QueueItemResponse.model_validate(item),
        message="Queue item updated",
    )


# ---------------------------------------------------------------------------
# DELETE  /workflow/development-queue
# ---------------------------------------------------------------------------


@router.delete(
    "/development-queue",
    response_model=QueueItemMutationResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def remove_from_development_queue(
    problem_id: uuid.UUID = Query(..., alias="problemId", description="Problem id"),
    service: DevelopmentQueueService = Depends(get_queue_service),
    admin: dict = Depends(require_admin),
):
    """Remove a problem from the queue; later items move up one slot."""
    try:
        await service.remove_item(problem_id)
    except WorkflowError as e:
        raise workflow_http_error(e) from e
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=_safe_error("removing from development queue", e),
        ) from e

    logger.info("Problem %s removed from queue by %s", problem_id, admin["id"])
    return QueueItemMutationResponse(message="Problem removed from development queue")
