"""
Unit Tests for workflow request/response models

Tests Pydantic validation of the status-update and queue request bodies
and the camelCase wire format.

Usage:
    cd backend && pytest tests/test_workflow_models.py -v
"""

import os
import sys
import uuid

import pytest
from pydantic import ValidationError

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.models.queue_models import AddToQueueRequest, UpdateQueueRequest
from app.models.workflow_models import (
    MAX_REASON_LENGTH,
    StatusUpdateRequest,
    TransitionResponse,
)
from app.workflow.policy import ProblemStatus, QueuePriority


def make_body(**overrides):
    body = {"problemId": str(uuid.uuid4()), "newVoteCount": 55}
    body.update(overrides)
    return body


class TestStatusUpdateRequest:
    """Tests for the status-update body."""

    def test_milestone_variant(self):
        request = StatusUpdateRequest.model_validate(make_body())

        assert request.admin_override is False
        assert request.target_status is None
        assert request.variant == "milestone_triggered"

    def test_snake_case_accepted(self):
        request = StatusUpdateRequest.model_validate(
            {"problem_id": str(uuid.uuid4()), "new_vote_count": 3}
        )
        assert request.new_vote_count == 3

    def test_override_variant(self):
        request = StatusUpdateRequest.model_validate(make_body(
            adminOverride=True, targetStatus="Rejected", reason="duplicate"
        ))

        assert request.target_status == ProblemStatus.REJECTED
        assert request.variant == "admin_override"

    def test_override_without_target(self):
        with pytest.raises(ValidationError, match="targetStatus"):
            StatusUpdateRequest.model_validate(make_body(adminOverride=True, reason="x"))

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_override_without_reason(self, reason):
        with pytest.raises(ValidationError, match="reason"):
            StatusUpdateRequest.model_validate(make_body(
                adminOverride=True, targetStatus="Rejected", reason=reason
            ))

    def test_negative_votes(self):
        with pytest.raises(ValidationError):
            StatusUpdateRequest.model_validate(make_body(newVoteCount=-1))

    def test_malformed_problem_id(self):
        with pytest.raises(ValidationError):
            StatusUpdateRequest.model_validate(make_body(problemId="problem-42"))

    def test_unknown_status(self):
        with pytest.raises(ValidationError):
            StatusUpdateRequest.model_validate(make_body(
                adminOverride=True, targetStatus="Archived", reason="x"
            ))

    def test_reason_length_limit(self):
        StatusUpdateRequest.model_validate(make_body(reason="a" * MAX_REASON_LENGTH))
        with pytest.raises(ValidationError):
            StatusUpdateRequest.model_validate(
                make_body(reason="a" * (MAX_REASON_LENGTH + 1))
            )


class TestTransitionResponse:
    """Tests for the serialized transition result."""

    def test_camel_case_without_unset_side_effects(self):
        response = TransitionResponse(
            problem_id=uuid.uuid4(),
            previous_status="Proposed",
            new_status="Proposed",
            status_changed=False,
            workflow_action="none",
            vote_count=10,
        )

        data = response.model_dump(by_alias=True, exclude_none=True)

        assert data["statusChanged"] is False
        assert data["workflowAction"] == "none"
        assert "notificationSent" not in data
        assert "addedToDevQueue" not in data


class TestQueueRequests:
    """Tests for development queue bodies."""

    def test_add_defaults_to_medium(self):
        request = AddToQueueRequest.model_validate({"problemId": str(uuid.uuid4())})
        assert request.priority == QueuePriority.MEDIUM

    def test_add_rejects_unknown_priority(self):
        with pytest.raises(ValidationError):
            AddToQueueRequest.model_validate(
                {"problemId": str(uuid.uuid4()), "priority": "critical"}
            )

    def test_add_limits_estimated_hours(self):
        with pytest.raises(ValidationError):
            AddToQueueRequest.model_validate(
                {"problemId": str(uuid.uuid4()), "estimatedHours": 5000}
            )

    def test_update_position_must_be_positive(self):
        with pytest.raises(ValidationError):
            UpdateQueueRequest.model_validate(
                {"problemId": str(uuid.uuid4()), "queuePosition": 0}
            )

    def test_update_dump_only_sets_given_fields(self):
        request = UpdateQueueRequest.model_validate(
            {"problemId": str(uuid.uuid4()), "notes": "blocked on parts"}
        )
        changes = request.model_dump(exclude={"problem_id"}, exclude_none=True)
        assert changes == {"notes": "blocked on parts"}
