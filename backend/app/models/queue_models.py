"""Pydantic request/response schemas for the development queue."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from app.workflow.policy import QueuePriority, QueueStatus


class CamelModel(BaseModel):
    """Base schema with camelCase aliases; snake_case accepted on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class AddToQueueRequest(CamelModel):
    """Request body for manually queueing an In Development problem."""

    problem_id: uuid.UUID
    priority: QueuePriority = QueuePriority.MEDIUM
    added_by: Optional[str] = Field(None, max_length=100)
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)
    notes: Optional[str] = Field(None, max_length=500)


class UpdateQueueRequest(CamelModel):
    """Request body for editing a queue item. All fields but problemId optional."""

    problem_id: uuid.UUID
    priority: Optional[QueuePriority] = None
    queue_position: Optional[int] = Field(None, ge=1)
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)
    estimated_completion: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)
    status: Optional[QueueStatus] = None


class QueueItemResponse(CamelModel):
    """Development queue item (mirrors all DB columns)."""

    id: uuid.UUID
    problem_id: uuid.UUID
    priority: str
    queue_position: int
    status: str
    estimated_hours: Optional[float] = None
    estimated_completion: Optional[datetime] = None
    notes: Optional[str] = None
    added_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class QueuePagination(CamelModel):
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_prev_page: bool
    limit: int


class QueueStatistics(CamelModel):
    total: int = 0
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)


class QueueListResponse(CamelModel):
    success: bool = True
    queue: List[QueueItemResponse] = Field(default_factory=list)
    pagination: QueuePagination
    statistics: QueueStatistics


class QueueItemMutationResponse(CamelModel):
    success: bool = True
    queue_item: Optional[QueueItemResponse] = None
    message: str
