"""SQLAlchemy implementation of the workflow persistence contract.

One repository wraps one request-scoped ``AsyncSession``.  The services
decide when to commit: the workflow service commits the status change and
its audit entry together, then each event subscriber commits (or rolls
back) its own writes separately.

Workflow log rows are append-only; no update or delete method exists for
them here.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db.development_queue import DevelopmentQueueItem
from app.models.db.notification import Notification, NotificationPreference
from app.models.db.problem import Problem
from app.models.db.user import User
from app.models.db.workflow_log import WorkflowLog

logger = logging.getLogger(__name__)

# pg_advisory_xact_lock key guarding development_queue positions
QUEUE_LOCK_KEY = 7_420_001


class SqlWorkflowRepository:
    """Problem, workflow log, queue, and notification persistence."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Transaction control
    # ------------------------------------------------------------------

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ------------------------------------------------------------------
    # Problems
    # ------------------------------------------------------------------

    async def get_problem(self, problem_id: uuid.UUID) -> Optional[Problem]:
        result = await self.db.execute(select(Problem).where(Problem.id == problem_id))
        return result.scalar_one_or_none()

    async def update_problem_status(
        self,
        problem_id: uuid.UUID,
        expected_status: str,
        new_status: str,
    ) -> bool:
        """Conditionally move a problem out of *expected_status*.

        The UPDATE only matches while the row still holds the status the
        caller read, so two concurrent writers cannot both leave the same
        status.  Returns False when the guard did not match.
        """
        result = await self.db.execute(
            update(Problem)
            .where(Problem.id == problem_id, Problem.status == expected_status)
            .values(status=new_status, updated_at=func.now())
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    async def count_problems_by_status(self) -> dict[str, int]:
        result = await self.db.execute(
            select(Problem.status, func.count(Problem.id)).group_by(Problem.status)
        )
        return {row[0]: row[1] for row in result.all()}

    # ------------------------------------------------------------------
    # Workflow logs (append-only)
    # ------------------------------------------------------------------

    async def add_workflow_log(
        self,
        problem_id: uuid.UUID,
        previous_status: str,
        new_status: str,
        trigger_type: str,
        vote_count_at_change: int,
        triggered_by: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> WorkflowLog:
        entry = WorkflowLog(
            problem_id=problem_id,
            previous_status=previous_status,
            new_status=new_status,
            trigger_type=trigger_type,
            triggered_by=triggered_by,
            vote_count_at_change=vote_count_at_change,
            reason=reason,
        )
        self.db.add(entry)
        await self.db.flush()
        await self.db.refresh(entry)
        return entry

    async def list_workflow_logs(self, problem_id: uuid.UUID) -> list[WorkflowLog]:
        """All log entries for a problem, newest first."""
        result = await self.db.execute(
            select(WorkflowLog)
            .where(WorkflowLog.problem_id == problem_id)
            .order_by(WorkflowLog.created_at.desc(), WorkflowLog.id.desc())
        )
        return list(result.scalars().all())

    async def list_recent_workflow_logs(
        self,
        limit: int,
        offset: int = 0,
        trigger_type: Optional[str] = None,
        problem_id: Optional[uuid.UUID] = None,
    ) -> tuple[list[WorkflowLog], int]:
        query = select(WorkflowLog)
        count_query = select(func.count(WorkflowLog.id))
        if trigger_type:
            query = query.where(WorkflowLog.trigger_type == trigger_type)
            count_query = count_query.where(WorkflowLog.trigger_type == trigger_type)
        if problem_id:
            query = query.where(WorkflowLog.problem_id == problem_id)
            count_query = count_query.where(WorkflowLog.problem_id == problem_id)

        result = await self.db.execute(
            query.order_by(WorkflowLog.created_at.desc()).limit(limit).offset(offset)
        )
        total = (await self.db.execute(count_query)).scalar() or 0
        return list(result.scalars().all()), total

    async def count_workflow_logs_since(self, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(WorkflowLog.id)).where(WorkflowLog.created_at >= since)
        )
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Development queue
    # ------------------------------------------------------------------

    async def lock_queue(self) -> None:
        """Serialise position changes until the current transaction ends.

        Row locks cannot cover an insert into an empty or growing queue, so
        PostgreSQL takes a transaction-scoped advisory lock instead.  Other
        backends run without it.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(:key)"), {"key": QUEUE_LOCK_KEY}
        )

    async def get_queue_item(
        self, problem_id: uuid.UUID
    ) -> Optional[DevelopmentQueueItem]:
        result = await self.db.execute(
            select(DevelopmentQueueItem).where(
                DevelopmentQueueItem.problem_id == problem_id
            )
        )
        return result.scalar_one_or_none()

    async def list_queue_items(self) -> list[DevelopmentQueueItem]:
        result = await self.db.execute(
            select(DevelopmentQueueItem).order_by(
                DevelopmentQueueItem.queue_position.asc()
            )
        )
        return list(result.scalars().all())

    async def list_queue_page(
        self,
        limit: int,
        offset: int = 0,
        priority: Optional[str] = None,
        status: Optional[str] = None,
    ) -> tuple[list[DevelopmentQueueItem], int]:
        query = select(DevelopmentQueueItem)
        count_query = select(func.count(DevelopmentQueueItem.id))
        if priority:
            query = query.where(DevelopmentQueueItem.priority == priority)
            count_query = count_query.where(DevelopmentQueueItem.priority == priority)
        if status:
            query = query.where(DevelopmentQueueItem.status == status)
            count_query = count_query.where(DevelopmentQueueItem.status == status)

        result = await self.db.execute(
            query.order_by(DevelopmentQueueItem.queue_position.asc())
            .limit(limit)
            .offset(offset)
        )
        total = (await self.db.execute(count_query)).scalar() or 0
        return list(result.scalars().all()), total

    async def count_queue_items(self) -> list[tuple[str, str, int]]:
        """``(priority, status, count)`` rows over the whole queue."""
        result = await self.db.execute(
            select(
                DevelopmentQueueItem.priority,
                DevelopmentQueueItem.status,
                func.count(DevelopmentQueueItem.id),
            ).group_by(DevelopmentQueueItem.priority, DevelopmentQueueItem.status)
        )
        return [(row[0], row[1], row[2]) for row in result.all()]

    async def add_queue_item(self, item: DevelopmentQueueItem) -> DevelopmentQueueItem:
        self.db.add(item)
        await self.db.flush()
        await self.db.refresh(item)
        return item

    async def save_queue_item(
        self, item: DevelopmentQueueItem
    ) -> DevelopmentQueueItem:
        item.updated_at = func.now()
        await self.db.flush()
        await self.db.refresh(item)
        return item

    async def shift_queue_positions(
        self, start: int, end: Optional[int], delta: int
    ) -> None:
        """Add *delta* to every position in ``[start, end]`` (open-ended if None)."""
        criteria = [DevelopmentQueueItem.queue_position >= start]
        if end is not None:
            criteria.append(DevelopmentQueueItem.queue_position <= end)
        await self.db.execute(
            update(DevelopmentQueueItem)
            .where(*criteria)
            .values(
                queue_position=DevelopmentQueueItem.queue_position + delta,
                updated_at=func.now(),
            )
            .execution_options(synchronize_session="fetch")
        )

    async def delete_queue_item(self, item: DevelopmentQueueItem) -> None:
        await self.db.delete(item)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Users and notifications
    # ------------------------------------------------------------------

    async def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_notification_preference(
        self, user_id: uuid.UUID
    ) -> Optional[NotificationPreference]:
        result = await self.db.execute(
            select(NotificationPreference).where(
                NotificationPreference.user_id == user_id
            )
        )
        return result.scalar_one_or_none()

    async def add_notification(self, notification: Notification) -> Notification:
        self.db.add(notification)
        await self.db.flush()
        return notification
