"""Problem status policy.

Pure decision rules for the problem lifecycle: which statuses exist, which
vote counts unlock which status, and which status changes are legal.  No
database or I/O access happens here so the rules can be shared by the
workflow service, the query surface, and the admin endpoints.
"""

from enum import Enum
from typing import Optional


class ProblemStatus(str, Enum):
    PROPOSED = "Proposed"
    UNDER_REVIEW = "Under Review"
    PRIORITY_QUEUE = "Priority Queue"
    IN_DEVELOPMENT = "In Development"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class TriggerType(str, Enum):
    MILESTONE_TRIGGERED = "milestone_triggered"
    ADMIN_OVERRIDE = "admin_override"


class QueuePriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class QueueStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


# ---------------------------------------------------------------------------
# Vote thresholds (ascending)
# ---------------------------------------------------------------------------
STATUS_THRESHOLDS: dict[int, ProblemStatus] = {
    50: ProblemStatus.UNDER_REVIEW,
    75: ProblemStatus.PRIORITY_QUEUE,
    100: ProblemStatus.IN_DEVELOPMENT,
}

# ---------------------------------------------------------------------------
# Allowed status transitions
# ---------------------------------------------------------------------------
ALLOWED_TRANSITIONS: dict[ProblemStatus, list[ProblemStatus]] = {
    ProblemStatus.PROPOSED: [ProblemStatus.UNDER_REVIEW, ProblemStatus.REJECTED],
    ProblemStatus.UNDER_REVIEW: [ProblemStatus.PRIORITY_QUEUE, ProblemStatus.REJECTED],
    ProblemStatus.PRIORITY_QUEUE: [ProblemStatus.IN_DEVELOPMENT, ProblemStatus.REJECTED],
    ProblemStatus.IN_DEVELOPMENT: [ProblemStatus.COMPLETED, ProblemStatus.REJECTED],
    # Terminal states -- no outgoing transitions
    ProblemStatus.COMPLETED: [],
    ProblemStatus.REJECTED: [],
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# Lower rank sorts earlier in the development queue
PRIORITY_RANK: dict[QueuePriority, int] = {
    QueuePriority.URGENT: 1,
    QueuePriority.HIGH: 2,
    QueuePriority.MEDIUM: 3,
    QueuePriority.LOW: 4,
}

HIGH_PRIORITY_VOTES = 100


def is_terminal(status: ProblemStatus | str) -> bool:
    return ProblemStatus(status) in TERMINAL_STATUSES


def allowed_targets(status: ProblemStatus | str) -> list[ProblemStatus]:
    return list(ALLOWED_TRANSITIONS[ProblemStatus(status)])


def is_legal_transition(
    from_status: ProblemStatus | str, to_status: ProblemStatus | str
) -> bool:
    """Return True when ``from_status -> to_status`` is an edge of the graph."""
    return ProblemStatus(to_status) in ALLOWED_TRANSITIONS[ProblemStatus(from_status)]


def milestone_target(
    status: ProblemStatus | str,
    previous_votes: int,
    new_votes: int,
) -> Optional[ProblemStatus]:
    """Pick the status unlocked by a vote-count change, if any.

    Thresholds are walked in ascending order.  The first threshold crossed
    (``previous_votes < threshold <= new_votes``) whose target is legal from
    *status* wins and the walk stops, so a single update advances a problem
    by at most one step even when several thresholds are crossed at once.
    """
    current = ProblemStatus(status)
    if current in TERMINAL_STATUSES:
        return None

    for threshold in sorted(STATUS_THRESHOLDS):
        target = STATUS_THRESHOLDS[threshold]
        if previous_votes < threshold <= new_votes and is_legal_transition(
            current, target
        ):
            return target
    return None


def next_milestone(
    status: ProblemStatus | str, votes: int
) -> Optional[tuple[int, ProblemStatus]]:
    """Return ``(threshold, target_status)`` for the next unreached threshold.

    Returns None when the problem is terminal or every threshold is behind it.
    The target is not checked against the transition table: a problem moved
    ahead by an override still reports the first threshold above its votes,
    even when that target can no longer fire.
    """
    if is_terminal(status):
        return None
    for threshold in sorted(STATUS_THRESHOLDS):
        if votes < threshold:
            return threshold, STATUS_THRESHOLDS[threshold]
    return None


def queue_priority_for(votes: int) -> QueuePriority:
    if votes >= HIGH_PRIORITY_VOTES:
        return QueuePriority.HIGH
    return QueuePriority.MEDIUM
