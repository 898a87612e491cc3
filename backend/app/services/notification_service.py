"""In-app notifications for problem status changes."""

import logging
import uuid
from typing import Any, Optional

from app.models.db.notification import Notification
from app.workflow.errors import ProblemNotFound

logger = logging.getLogger(__name__)

STATUS_CHANGE_NOTIFICATION = "status_change"

_STATUS_MESSAGES: dict[str, str] = {
    "Under Review": "has reached enough votes to be reviewed by the community team",
    "Priority Queue": "has been moved to the priority queue",
    "In Development": "is now in development",
    "Completed": "has been completed",
    "Rejected": "has been closed without development",
}


class NotificationDispatcher:
    """Deliver status-change notifications to a problem's proposer.

    Writes go through the repository's session; the caller owns the
    commit.
    """

    def __init__(self, repo):
        self.repo = repo

    async def send_status_change(
        self,
        problem_id: uuid.UUID,
        previous_status: str,
        new_status: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> list[uuid.UUID]:
        """Notify the proposer about a status change.

        Args:
            problem_id: Problem that changed status.
            previous_status: Status before the change.
            new_status: Status after the change.
            metadata: Trigger details (trigger type, vote count, admin, reason).

        Returns:
            Ids of the notifications created (empty when the proposer opted out).

        Raises:
            ProblemNotFound: If the problem no longer exists.
        """
        problem = await self.repo.get_problem(problem_id)
        if problem is None:
            raise ProblemNotFound(problem_id)

        preference = await self.repo.get_notification_preference(problem.proposer_id)
        if preference is not None and not preference.status_changes:
            logger.debug(
                "Proposer %s opted out of status-change notifications",
                problem.proposer_id,
            )
            return []

        metadata = metadata or {}
        detail = _STATUS_MESSAGES.get(new_status, f"moved to {new_status}")
        message = f'Your problem "{problem.title}" {detail}.'
        if metadata.get("reason"):
            message += f" Reason: {metadata['reason']}"

        notification = Notification(
            user_id=problem.proposer_id,
            problem_id=problem.id,
            notification_type=STATUS_CHANGE_NOTIFICATION,
            title=f"Status update: {new_status}",
            message=message,
            payload={
                "previous_status": previous_status,
                "new_status": new_status,
                **metadata,
            },
        )
        await self.repo.add_notification(notification)
        logger.info(
            "Status-change notification queued for user %s (problem %s)",
            problem.proposer_id,
            problem_id,
        )
        return [notification.id]
