"""Business logic for the vote-milestone problem workflow.

:class:`WorkflowService` is the only place where a problem's status
changes.  One call to :meth:`WorkflowService.update_status` reads the
problem, decides the transition, writes the new status together with its
audit entry in a single transaction, and only then publishes a
:class:`~app.workflow.events.StatusChanged` event for the side effects
(notification, development queue).
"""

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.services.development_queue_service import DevelopmentQueueService
from app.services.notification_service import NotificationDispatcher
from app.workflow.errors import (
    AdminActorRequired,
    InvalidTransition,
    ProblemNotFound,
    TransitionConflict,
    WorkflowValidationError,
)
from app.workflow.events import StatusChanged, WorkflowEventBus
from app.workflow.policy import (
    STATUS_THRESHOLDS,
    ProblemStatus,
    TriggerType,
    allowed_targets,
    is_legal_transition,
    milestone_target,
    next_milestone,
    queue_priority_for,
)

logger = logging.getLogger(__name__)

NOTIFICATION_SUBSCRIBER = "notification"
DEV_QUEUE_SUBSCRIBER = "development_queue"
WORKFLOW_ACTION_NONE = "none"
RECENT_CHANGES_WINDOW = timedelta(days=7)


@dataclass
class TransitionResult:
    """Outcome of one status-update attempt."""

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

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class WorkflowService:
    """Orchestrates status transitions for problems."""

    def __init__(self, repo, event_bus: WorkflowEventBus):
        self.repo = repo
        self.event_bus = event_bus

    # ------------------------------------------------------------------
    # update_status
    # ------------------------------------------------------------------

    async def update_status(
        self,
        problem_id: uuid.UUID,
        new_vote_count: int,
        admin_override: bool = False,
        target_status: Optional[ProblemStatus | str] = None,
        reason: Optional[str] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> TransitionResult:
        """Attempt one status transition for a problem.

        Without ``admin_override`` the vote milestones decide: the first
        threshold crossed between the stored vote count and
        ``new_vote_count`` whose target is legal from the current status is
        applied.  With ``admin_override`` the requested ``target_status`` is
        applied if the transition table allows it.

        Args:
            problem_id: Problem to update.
            new_vote_count: Freshly tallied vote count (>= 0).
            admin_override: Apply ``target_status`` instead of milestones.
            target_status: Requested status for an override.
            reason: Required, non-blank justification for an override.
            actor_id: Admin performing the override.

        Returns:
            TransitionResult; side-effect failures appear as
            ``notification_sent=False`` / ``added_to_dev_queue=False``.

        Raises:
            WorkflowValidationError: Bad input; nothing was read or written.
            AdminActorRequired: Override without an actor id.
            ProblemNotFound: Unknown problem.
            InvalidTransition: Override target not reachable from the
                current status (including any override on a terminal problem).
            TransitionConflict: A concurrent writer changed the status first.
        """
        if new_vote_count < 0:
            raise WorkflowValidationError("Vote count must be non-negative")

        target: Optional[ProblemStatus] = None
        if admin_override:
            if target_status is None:
                raise WorkflowValidationError("Admin override requires a target status")
            if not reason or not reason.strip():
                raise WorkflowValidationError("Admin override requires a reason")
            if actor_id is None:
                raise AdminActorRequired(
                    "Admin authentication required for manual status changes"
                )
            try:
                target = ProblemStatus(target_status)
            except ValueError as exc:
                raise WorkflowValidationError(
                    f"Unknown target status: {target_status}"
                ) from exc

        problem = await self.repo.get_problem(problem_id)
        if problem is None:
            raise ProblemNotFound(problem_id)

        previous = ProblemStatus(problem.status)

        if admin_override:
            if not is_legal_transition(previous, target):
                raise InvalidTransition(
                    previous.value,
                    target.value,
                    [s.value for s in allowed_targets(previous)],
                )
            new_status = target
            trigger = TriggerType.ADMIN_OVERRIDE
        else:
            new_status = milestone_target(previous, problem.vote_count, new_vote_count)
            if new_status is None:
                return TransitionResult(
                    problem_id=problem_id,
                    previous_status=previous.value,
                    new_status=previous.value,
                    status_changed=False,
                    workflow_action=WORKFLOW_ACTION_NONE,
                    vote_count=new_vote_count,
                )
            trigger = TriggerType.MILESTONE_TRIGGERED
            # Milestone transitions are never attributed to a caller
            actor_id = None

        await self._commit_transition(
            problem_id, previous, new_status, trigger, new_vote_count, actor_id, reason
        )

        result = TransitionResult(
            problem_id=problem_id,
            previous_status=previous.value,
            new_status=new_status.value,
            status_changed=True,
            workflow_action=trigger.value,
            vote_count=new_vote_count,
        )

        event = StatusChanged(
            problem_id=problem_id,
            previous_status=previous,
            new_status=new_status,
            trigger_type=trigger,
            vote_count=new_vote_count,
            triggered_by=actor_id,
            reason=reason,
        )
        outcomes = await self.event_bus.publish(event)

        if NOTIFICATION_SUBSCRIBER in outcomes:
            outcome = outcomes[NOTIFICATION_SUBSCRIBER]
            result.notification_sent = outcome.ok
            result.notification_error = outcome.error
        if DEV_QUEUE_SUBSCRIBER in outcomes:
            outcome = outcomes[DEV_QUEUE_SUBSCRIBER]
            result.added_to_dev_queue = outcome.ok
            result.dev_queue_error = outcome.error

        return result

    async def _commit_transition(
        self,
        problem_id: uuid.UUID,
        previous: ProblemStatus,
        new_status: ProblemStatus,
        trigger: TriggerType,
        vote_count: int,
        actor_id: Optional[uuid.UUID],
        reason: Optional[str],
    ) -> None:
        """Write the status and its audit entry atomically, then commit."""
        updated = await self.repo.update_problem_status(
            problem_id, previous.value, new_status.value
        )
        if not updated:
            await self.repo.rollback()
            logger.warning(
                "Status update conflict for problem %s (expected %s)",
                problem_id,
                previous.value,
            )
            raise TransitionConflict(problem_id, previous.value)

        await self.repo.add_workflow_log(
            problem_id=problem_id,
            previous_status=previous.value,
            new_status=new_status.value,
            trigger_type=trigger.value,
            vote_count_at_change=vote_count,
            triggered_by=actor_id,
            reason=reason,
        )
        await self.repo.commit()
        logger.info(
            "Problem %s: %s -> %s (%s, votes=%d)",
            problem_id,
            previous.value,
            new_status.value,
            trigger.value,
            vote_count,
        )

    # ------------------------------------------------------------------
    # get_workflow_info
    # ------------------------------------------------------------------

    async def get_workflow_info(self, problem_id: uuid.UUID) -> dict[str, Any]:
        """Compose the read-side view of a problem's workflow state.

        Returns:
            Dict with the problem's status and votes, the next milestone
            (``None`` once none remain or the problem is terminal), the
            history newest first, legal next statuses, the threshold table,
            and the development queue item while In Development.

        Raises:
            ProblemNotFound: Unknown problem.
        """
        problem = await self.repo.get_problem(problem_id)
        if problem is None:
            raise ProblemNotFound(problem_id)

        status = ProblemStatus(problem.status)
        milestone = next_milestone(status, problem.vote_count)
        next_threshold, next_status = milestone if milestone else (None, None)

        queue_item = None
        if status == ProblemStatus.IN_DEVELOPMENT:
            queue_item = await self.repo.get_queue_item(problem_id)

        history = await self.repo.list_workflow_logs(problem_id)

        return {
            "problem": {
                "id": problem.id,
                "title": problem.title,
                "status": status.value,
                "vote_count": problem.vote_count,
                "created_at": problem.created_at,
                "updated_at": problem.updated_at,
                "next_milestone": next_threshold,
                "next_status": next_status.value if next_status else None,
                "votes_needed": (
                    next_threshold - problem.vote_count if next_threshold else None
                ),
                "development_queue_info": queue_item,
            },
            "workflow_history": history,
            "status_thresholds": {
                threshold: target.value for threshold, target in STATUS_THRESHOLDS.items()
            },
            "valid_transitions": [s.value for s in allowed_targets(status)],
        }

    # ------------------------------------------------------------------
    # Admin views
    # ------------------------------------------------------------------

    async def get_workflow_stats(self) -> dict[str, Any]:
        """Problem counts per status and workflow changes in the last 7 days."""
        counts = await self.repo.count_problems_by_status()
        by_status = {status.value: counts.get(status.value, 0) for status in ProblemStatus}
        now = datetime.now(timezone.utc)
        recent = await self.repo.count_workflow_logs_since(now - RECENT_CHANGES_WINDOW)
        return {
            "total_problems": sum(by_status.values()),
            "by_status": by_status,
            "recent_changes": recent,
            "last_updated": now,
        }

    async def list_workflow_history(
        self,
        page: int = 1,
        limit: int = 20,
        trigger_type: Optional[str] = None,
        problem_id: Optional[uuid.UUID] = None,
    ) -> dict[str, Any]:
        entries, total = await self.repo.list_recent_workflow_logs(
            limit=limit,
            offset=(page - 1) * limit,
            trigger_type=trigger_type,
            problem_id=problem_id,
        )
        return {"entries": entries, "total": total, "page": page, "limit": limit}


# ---------------------------------------------------------------------------
# Event wiring
# ---------------------------------------------------------------------------


def build_workflow_event_bus(
    repo,
    notifier: Optional[NotificationDispatcher] = None,
    queue_service: Optional[DevelopmentQueueService] = None,
) -> WorkflowEventBus:
    """Create the event bus with the notification and queue subscribers.

    Each subscriber commits its own writes after the status transition has
    already been committed, and rolls them back on failure so a broken side
    effect cannot leave the session unusable for the next subscriber.
    """
    notifier = notifier or NotificationDispatcher(repo)
    queue_service = queue_service or DevelopmentQueueService(repo)

    async def notify(event: StatusChanged) -> None:
        try:
            await notifier.send_status_change(
                event.problem_id,
                event.previous_status.value,
                event.new_status.value,
                event.metadata,
            )
            await repo.commit()
        except Exception:
            await repo.rollback()
            raise

    async def enqueue(event: StatusChanged) -> None:
        try:
            await queue_service.enqueue(
                event.problem_id,
                priority=queue_priority_for(event.vote_count),
                added_by=event.trigger_type.value,
            )
            await repo.commit()
        except Exception:
            await repo.rollback()
            raise

    bus = WorkflowEventBus()
    bus.subscribe(NOTIFICATION_SUBSCRIBER, notify)
    bus.subscribe(
        DEV_QUEUE_SUBSCRIBER,
        enqueue,
        applies=lambda event: event.new_status == ProblemStatus.IN_DEVELOPMENT,
    )
    return bus
