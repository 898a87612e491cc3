"""Exception hierarchy for the workflow service.

Routers translate these into HTTP errors; nothing here knows about HTTP.
"""


class WorkflowError(Exception):
    """Base class for workflow failures reported to the caller."""


class WorkflowValidationError(WorkflowError):
    """Malformed input, rejected before any persistence access."""


class ProblemNotFound(WorkflowError):
    def __init__(self, problem_id):
        super().__init__(f"Problem not found: {problem_id}")
        self.problem_id = problem_id


class InvalidTransition(WorkflowError):
    def __init__(self, from_status: str, to_status: str, allowed: list[str]):
        allowed_text = ", ".join(allowed) if allowed else "none (terminal state)"
        super().__init__(
            f"Invalid status transition from '{from_status}' to '{to_status}'. "
            f"Allowed transitions: {allowed_text}"
        )
        self.from_status = from_status
        self.to_status = to_status
        self.allowed = allowed


class TransitionConflict(WorkflowError):
    """Another writer changed the problem status first; safe to retry."""

    def __init__(self, problem_id, expected_status: str):
        super().__init__(
            f"Problem {problem_id} is no longer in status '{expected_status}'. "
            "Reload and retry."
        )
        self.problem_id = problem_id
        self.expected_status = expected_status


class AdminActorRequired(WorkflowError):
    """Admin override attempted without an asserted admin actor."""


class QueueItemExists(WorkflowError):
    def __init__(self, problem_id):
        super().__init__(f"Problem {problem_id} is already in the development queue")
        self.problem_id = problem_id


class QueueItemNotFound(WorkflowError):
    def __init__(self, problem_id):
        super().__init__(f"Queue item not found for problem {problem_id}")
        self.problem_id = problem_id
