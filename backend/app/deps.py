"""Shared dependencies for all workflow API routers.

Centralises the request-scoped database session, the repository and
service factories, and small error helpers so that every router module can
``from app.deps import …`` without pulling in ``main``.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.repositories import SqlWorkflowRepository
from app.services.development_queue_service import DevelopmentQueueService
from app.services.workflow_service import WorkflowService, build_workflow_event_bus
from app.workflow.errors import (
    AdminActorRequired,
    InvalidTransition,
    ProblemNotFound,
    QueueItemExists,
    QueueItemNotFound,
    TransitionConflict,
    WorkflowError,
    WorkflowValidationError,
)
from app.workflow.events import WorkflowEventBus

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settings + database session
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for a single request.

    Commits on success, rolls back on exception, and always closes the
    session.  Responds 503 while no database is configured.
    """
    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database not configured. Set DATABASE_URL environment variable.",
        )
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ---------------------------------------------------------------------------
# Repository + services
# ---------------------------------------------------------------------------


def get_workflow_repository(
    db: AsyncSession = Depends(get_db),
) -> SqlWorkflowRepository:
    return SqlWorkflowRepository(db)


def get_queue_service(
    repo: SqlWorkflowRepository = Depends(get_workflow_repository),
) -> DevelopmentQueueService:
    return DevelopmentQueueService(repo)


def get_event_bus(
    repo: SqlWorkflowRepository = Depends(get_workflow_repository),
    queue_service: DevelopmentQueueService = Depends(get_queue_service),
) -> WorkflowEventBus:
    return build_workflow_event_bus(repo, queue_service=queue_service)


def get_workflow_service(
    repo: SqlWorkflowRepository = Depends(get_workflow_repository),
    event_bus: WorkflowEventBus = Depends(get_event_bus),
) -> WorkflowService:
    return WorkflowService(repo, event_bus)


# ---------------------------------------------------------------------------
# Error helpers
# ---------------------------------------------------------------------------


def _safe_error(operation: str, e: Exception) -> str:
    """Log the full exception but return a safe message without internal details.

    This prevents leaking stack traces, file paths, or database internals
    to API consumers while preserving full diagnostics in server logs.
    """
    logger.exception("Error during %s", operation)
    return f"{operation} failed. Please try again or contact support."


_WORKFLOW_ERROR_STATUS: list[tuple[type[WorkflowError], int]] = [
    (WorkflowValidationError, status.HTTP_400_BAD_REQUEST),
    (AdminActorRequired, status.HTTP_401_UNAUTHORIZED),
    (ProblemNotFound, status.HTTP_404_NOT_FOUND),
    (QueueItemNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTransition, status.HTTP_400_BAD_REQUEST),
    (TransitionConflict, status.HTTP_409_CONFLICT),
    (QueueItemExists, status.HTTP_409_CONFLICT),
]


def workflow_http_error(exc: WorkflowError) -> HTTPException:
    """Translate a domain error into the HTTPException the API returns."""
    for error_type, status_code in _WORKFLOW_ERROR_STATUS:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
