"""Business logic for the development queue.

Problems enter the queue once they reach ``In Development``.  Queue
positions are dense (1..N) and ordered by priority on insert; admins can
later move, re-prioritise, or remove items.  Every position change holds
the repository queue lock for the rest of its transaction.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.models.db.development_queue import DevelopmentQueueItem
from app.workflow.errors import (
    ProblemNotFound,
    QueueItemExists,
    QueueItemNotFound,
    WorkflowValidationError,
)
from app.workflow.policy import (
    PRIORITY_RANK,
    ProblemStatus,
    QueuePriority,
    QueueStatus,
)

logger = logging.getLogger(__name__)

# Fields an admin may edit directly; queue_position is handled separately
EDITABLE_FIELDS = ("priority", "status", "estimated_hours", "estimated_completion", "notes")


class DevelopmentQueueService:
    """Service layer for development queue operations."""

    def __init__(self, repo):
        self.repo = repo

    # ------------------------------------------------------------------
    # enqueue
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        problem_id: uuid.UUID,
        priority: QueuePriority | str = QueuePriority.MEDIUM,
        added_by: Optional[str] = None,
        estimated_hours: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> DevelopmentQueueItem:
        """Add an ``In Development`` problem to the queue.

        The item is placed after the last item of equal or higher priority;
        every later item moves down one position.

        Raises:
            ProblemNotFound: The problem does not exist.
            WorkflowValidationError: The problem is not In Development.
            QueueItemExists: The problem is already queued.
        """
        priority = QueuePriority(priority)

        problem = await self.repo.get_problem(problem_id)
        if problem is None:
            raise ProblemNotFound(problem_id)
        if problem.status != ProblemStatus.IN_DEVELOPMENT.value:
            raise WorkflowValidationError(
                f'Problem must be in "{ProblemStatus.IN_DEVELOPMENT.value}" status '
                f"to be added to the queue (current: {problem.status})"
            )
        if await self.repo.get_queue_item(problem_id) is not None:
            raise QueueItemExists(problem_id)

        await self.repo.lock_queue()
        position = self._insert_position(await self.repo.list_queue_items(), priority)
        await self.repo.shift_queue_positions(position, None, 1)

        estimated_completion = None
        if estimated_hours:
            estimated_completion = datetime.now(timezone.utc) + timedelta(
                hours=position * estimated_hours
            )

        item = DevelopmentQueueItem(
            problem_id=problem_id,
            priority=priority.value,
            queue_position=position,
            status=QueueStatus.QUEUED.value,
            estimated_hours=estimated_hours,
            estimated_completion=estimated_completion,
            notes=notes,
            added_by=added_by,
        )
        item = await self.repo.add_queue_item(item)
        logger.info(
            "Problem %s queued at position %d with %s priority",
            problem_id,
            position,
            priority.value,
        )
        return item

    @staticmethod
    def _insert_position(
        items: list[DevelopmentQueueItem], priority: QueuePriority
    ) -> int:
        rank = PRIORITY_RANK[priority]
        position = 1
        for item in items:
            if PRIORITY_RANK[QueuePriority(item.priority)] <= rank:
                position = item.queue_position + 1
        return position

    # ------------------------------------------------------------------
    # list_queue
    # ------------------------------------------------------------------

    async def list_queue(
        self,
        page: int = 1,
        limit: int = 20,
        priority: Optional[str] = None,
        status: Optional[str] = None,
    ) -> dict[str, Any]:
        """Page through the queue in position order with summary statistics."""
        offset = (page - 1) * limit
        items, total = await self.repo.list_queue_page(
            limit=limit, offset=offset, priority=priority, status=status
        )

        by_priority = {p.value: 0 for p in QueuePriority}
        by_status = {s.value: 0 for s in QueueStatus}
        overall = 0
        for item_priority, item_status, count in await self.repo.count_queue_items():
            overall += count
            if item_priority in by_priority:
                by_priority[item_priority] += count
            if item_status in by_status:
                by_status[item_status] += count

        total_pages = (total + limit - 1) // limit if total else 0
        return {
            "queue": items,
            "pagination": {
                "current_page": page,
                "total_pages": total_pages,
                "total_count": total,
                "has_next_page": page < total_pages,
                "has_prev_page": page > 1,
                "limit": limit,
            },
            "statistics": {
                "total": overall,
                "by_priority": by_priority,
                "by_status": by_status,
            },
        }

    # ------------------------------------------------------------------
    # update_item
    # ------------------------------------------------------------------

    async def update_item(
        self,
        problem_id: uuid.UUID,
        changes: dict[str, Any],
    ) -> DevelopmentQueueItem:
        """Apply admin edits to a queue item.

        ``queue_position`` moves the item; positions between the old and new
        slot shift by one so the queue stays dense.  Positions beyond the end
        of the queue are clamped to the last slot.
        """
        new_position = changes.get("queue_position")
        if new_position is not None:
            await self.repo.lock_queue()
        item = await self.repo.get_queue_item(problem_id)
        if item is None:
            raise QueueItemNotFound(problem_id)

        if new_position is not None and new_position != item.queue_position:
            queue_length = len(await self.repo.list_queue_items())
            await self._move(item, max(1, min(new_position, queue_length)))

        for field_name in EDITABLE_FIELDS:
            if changes.get(field_name) is not None:
                value = changes[field_name]
                if field_name == "priority":
                    value = QueuePriority(value).value
                elif field_name == "status":
                    value = QueueStatus(value).value
                setattr(item, field_name, value)

        return await self.repo.save_queue_item(item)

    async def _move(self, item: DevelopmentQueueItem, new_position: int) -> None:
        old_position = item.queue_position
        if new_position < old_position:
            await self.repo.shift_queue_positions(new_position, old_position - 1, 1)
        elif new_position > old_position:
            await self.repo.shift_queue_positions(old_position + 1, new_position, -1)
        item.queue_position = new_position
        logger.info(
            "Queue item for problem %s moved from %d to %d",
            item.problem_id,
            old_position,
            new_position,
        )

    # ------------------------------------------------------------------
    # remove_item
    # ------------------------------------------------------------------

    async def remove_item(self, problem_id: uuid.UUID) -> None:
        await self.repo.lock_queue()
        item = await self.repo.get_queue_item(problem_id)
        if item is None:
            raise QueueItemNotFound(problem_id)
        position = item.queue_position
        await self.repo.delete_queue_item(item)
        await self.repo.shift_queue_positions(position + 1, None, -1)
        logger.info("Problem %s removed from development queue", problem_id)
