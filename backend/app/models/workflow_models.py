"""Pydantic request/response schemas for the problem workflow endpoints.

Wire format is camelCase (``problemId``, ``newVoteCount`` ...); snake_case
field names are accepted on input as well.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from app.models.queue_models import CamelModel, QueueItemResponse
from app.workflow.policy import ProblemStatus, TriggerType

MAX_REASON_LENGTH = 500


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class StatusUpdateRequest(CamelModel):
    """Request body for a status update.

    Two variants share this body, discriminated by ``adminOverride``:

    - milestone (default): only ``problemId`` and ``newVoteCount`` matter;
    - admin override: ``targetStatus`` and a non-blank ``reason`` are
      mandatory.
    """

    problem_id: uuid.UUID = Field(..., description="Problem to update")
    new_vote_count: int = Field(..., ge=0, description="Current vote tally")
    admin_override: bool = Field(False, description="Apply targetStatus manually")
    target_status: Optional[ProblemStatus] = Field(
        None, description="Requested status (admin override only)"
    )
    reason: Optional[str] = Field(
        None,
        max_length=MAX_REASON_LENGTH,
        description="Justification recorded in the workflow log",
    )

    @model_validator(mode="after")
    def _check_override_fields(self):
        if self.admin_override:
            if self.target_status is None:
                raise ValueError("targetStatus is required when adminOverride is true")
            if not self.reason or not self.reason.strip():
                raise ValueError("reason is required when adminOverride is true")
        return self

    @property
    def variant(self) -> str:
        if self.admin_override:
            return TriggerType.ADMIN_OVERRIDE.value
        return TriggerType.MILESTONE_TRIGGERED.value


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class TransitionResponse(CamelModel):
    """Result of a status update attempt."""

    success: bool = True
    problem_id: uuid.UUID
    previous_status: str
    new_status: str
    status_changed: bool
    workflow_action: str
    vote_count: int
    notification_sent: Optional[bool] = None
    notification_error: Optional[str] = None
    added_to_dev_queue: Optional[bool] = None
    dev_queue_error: Optional[str] = None


class WorkflowLogResponse(CamelModel):
    """One workflow audit entry."""

    id: uuid.UUID
    problem_id: uuid.UUID
    previous_status: str
    new_status: str
    trigger_type: str
    triggered_by: Optional[uuid.UUID] = None
    vote_count_at_change: int
    reason: Optional[str] = None
    created_at: Optional[datetime] = None


class ProblemWorkflowState(CamelModel):
    """Current workflow position of a problem."""

    id: uuid.UUID
    title: str
    status: str
    vote_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    next_milestone: Optional[int] = None
    next_status: Optional[str] = None
    votes_needed: Optional[int] = None
    development_queue_info: Optional[QueueItemResponse] = None


class WorkflowInfoResponse(CamelModel):
    """Composed status, history, and queue view for one problem."""

    success: bool = True
    problem: ProblemWorkflowState
    workflow_history: List[WorkflowLogResponse] = Field(default_factory=list)
    status_thresholds: Dict[int, str] = Field(default_factory=dict)
    valid_transitions: List[str] = Field(default_factory=list)


class WorkflowStatsResponse(CamelModel):
    """Admin dashboard counters."""

    success: bool = True
    total_problems: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    recent_changes: int = 0
    last_updated: datetime


class WorkflowHistoryResponse(CamelModel):
    """Paginated workflow log across problems."""

    success: bool = True
    entries: List[WorkflowLogResponse] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
