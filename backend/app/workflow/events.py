"""Domain events emitted after a committed status transition.

The workflow service commits the status change first and only then
publishes a :class:`StatusChanged` event.  Each subscriber runs
independently; a failing subscriber is logged and reported as a
:class:`SubscriberOutcome` but never propagates to the publisher or to the
other subscribers.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from app.workflow.errors import WorkflowError
from app.workflow.policy import ProblemStatus, TriggerType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChanged:
    """A problem moved from ``previous_status`` to ``new_status``."""

    problem_id: uuid.UUID
    previous_status: ProblemStatus
    new_status: ProblemStatus
    trigger_type: TriggerType
    vote_count: int
    triggered_by: Optional[uuid.UUID] = None
    reason: Optional[str] = None
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def metadata(self) -> dict[str, Any]:
        return {
            "trigger_type": self.trigger_type.value,
            "vote_count": self.vote_count,
            "admin_user": str(self.triggered_by) if self.triggered_by else None,
            "reason": self.reason,
        }


@dataclass
class SubscriberOutcome:
    """Result of delivering one event to one subscriber."""

    subscriber: str
    ok: bool
    error: Optional[str] = None


@dataclass
class Subscriber:
    """A named event handler with an optional event filter."""

    name: str
    handler: Callable[[StatusChanged], Awaitable[Any]]
    applies: Callable[[StatusChanged], bool] = lambda event: True


def _public_error(subscriber: str, exc: Exception) -> str:
    """Caller-facing failure text; only domain errors carry their message."""
    if isinstance(exc, WorkflowError):
        return str(exc) or type(exc).__name__
    return f"{subscriber} failed ({type(exc).__name__})"


class WorkflowEventBus:
    """In-process publisher for :class:`StatusChanged` events."""

    def __init__(self, subscribers: Optional[list[Subscriber]] = None):
        self._subscribers: list[Subscriber] = list(subscribers or [])

    def subscribe(
        self,
        name: str,
        handler: Callable[[StatusChanged], Awaitable[Any]],
        applies: Optional[Callable[[StatusChanged], bool]] = None,
    ) -> None:
        if any(sub.name == name for sub in self._subscribers):
            raise ValueError(f"Subscriber '{name}' is already registered")
        self._subscribers.append(
            Subscriber(name=name, handler=handler, applies=applies or (lambda e: True))
        )

    @property
    def subscriber_names(self) -> list[str]:
        return [sub.name for sub in self._subscribers]

    async def publish(self, event: StatusChanged) -> dict[str, SubscriberOutcome]:
        """Deliver *event* to every interested subscriber, in registration order.

        Returns one outcome per subscriber that accepted the event, keyed by
        subscriber name.
        """
        outcomes: dict[str, SubscriberOutcome] = {}
        for sub in self._subscribers:
            if not sub.applies(event):
                continue
            try:
                await sub.handler(event)
            except Exception as exc:
                logger.exception(
                    "Subscriber %s failed for problem %s (%s -> %s)",
                    sub.name,
                    event.problem_id,
                    event.previous_status.value,
                    event.new_status.value,
                )
                outcomes[sub.name] = SubscriberOutcome(
                    subscriber=sub.name, ok=False, error=_public_error(sub.name, exc)
                )
            else:
                outcomes[sub.name] = SubscriberOutcome(subscriber=sub.name, ok=True)
        return outcomes
