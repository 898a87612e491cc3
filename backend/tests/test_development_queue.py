"""
Unit Tests for DevelopmentQueueService

Tests queue management against an in-memory repository:
- Priority-ordered insertion and dense positions
- Duplicate and status guards
- Pagination and statistics
- Admin edits, moves, and removal

Usage:
    cd backend && pytest tests/test_development_queue.py -v
"""

import asyncio
import os
import sys
import uuid
from datetime import datetime, timezone

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.services.development_queue_service import DevelopmentQueueService
from app.workflow.errors import (
    ProblemNotFound,
    QueueItemExists,
    QueueItemNotFound,
    WorkflowValidationError,
)
from app.workflow.policy import QueuePriority, QueueStatus
from workflow_fakes import InMemoryWorkflowRepository


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def repo():
    return InMemoryWorkflowRepository()


@pytest.fixture
def service(repo):
    return DevelopmentQueueService(repo)


def enqueue_new(repo, service, priority="medium", **kwargs):
    """Create an In Development problem and queue it."""
    problem = repo.add_problem(status="In Development", vote_count=100)
    return run(service.enqueue(problem.id, priority=priority, **kwargs))


def positions(repo) -> list[tuple[str, int]]:
    return [(item.priority, item.queue_position) for item in run(repo.list_queue_items())]


# ============================================================================
# ENQUEUE
# ============================================================================


class TestEnqueue:
    """Tests for adding problems to the queue."""

    def test_first_item_gets_position_one(self, repo, service):
        item = enqueue_new(repo, service)

        assert item.queue_position == 1
        assert item.status == QueueStatus.QUEUED.value
        assert item.priority == "medium"
        assert item.id is not None

    def test_same_priority_appends(self, repo, service):
        enqueue_new(repo, service)
        second = enqueue_new(repo, service)
        assert second.queue_position == 2

    def test_higher_priority_jumps_ahead(self, repo, service):
        """An urgent item goes before existing medium/low items."""
        enqueue_new(repo, service, priority="medium")
        enqueue_new(repo, service, priority="low")
        urgent = enqueue_new(repo, service, priority="urgent")

        assert urgent.queue_position == 1
        assert positions(repo) == [("urgent", 1), ("medium", 2), ("low", 3)]

    def test_insert_between_priorities(self, repo, service):
        enqueue_new(repo, service, priority="urgent")
        enqueue_new(repo, service, priority="low")
        high = enqueue_new(repo, service, priority=QueuePriority.HIGH)

        assert high.queue_position == 2
        assert positions(repo) == [("urgent", 1), ("high", 2), ("low", 3)]

    def test_estimated_completion_scales_with_position(self, repo, service):
        enqueue_new(repo, service)
        before = datetime.now(timezone.utc)
        item = enqueue_new(repo, service, estimated_hours=10)

        hours = (item.estimated_completion - before).total_seconds() / 3600
        assert 19.9 < hours < 20.1

    def test_no_estimate_without_hours(self, repo, service):
        item = enqueue_new(repo, service)
        assert item.estimated_completion is None

    def test_duplicate_rejected(self, repo, service):
        item = enqueue_new(repo, service)
        with pytest.raises(QueueItemExists):
            run(service.enqueue(item.problem_id))

    def test_problem_must_be_in_development(self, repo, service):
        problem = repo.add_problem(status="Priority Queue", vote_count=90)
        with pytest.raises(WorkflowValidationError):
            run(service.enqueue(problem.id))
        assert repo.queue == {}

    def test_unknown_problem(self, service):
        with pytest.raises(ProblemNotFound):
            run(service.enqueue(uuid.uuid4()))

    def test_invalid_priority(self, repo, service):
        problem = repo.add_problem(status="In Development")
        with pytest.raises(ValueError):
            run(service.enqueue(problem.id, priority="critical"))

    def test_enqueue_holds_queue_lock(self, repo, service):
        enqueue_new(repo, service)
        assert repo.queue_locks == 1

    def test_rejected_enqueue_takes_no_lock(self, repo, service):
        item = enqueue_new(repo, service)
        with pytest.raises(QueueItemExists):
            run(service.enqueue(item.problem_id))
        assert repo.queue_locks == 1


# ============================================================================
# LIST
# ============================================================================


class TestListQueue:
    """Tests for pagination and statistics."""

    def test_pagination(self, repo, service):
        for _ in range(5):
            enqueue_new(repo, service)

        data = run(service.list_queue(page=2, limit=2))

        assert [item.queue_position for item in data["queue"]] == [3, 4]
        assert data["pagination"] == {
            "current_page": 2,
            "total_pages": 3,
            "total_count": 5,
            "has_next_page": True,
            "has_prev_page": True,
            "limit": 2,
        }

    def test_statistics_cover_whole_queue(self, repo, service):
        enqueue_new(repo, service, priority="high")
        enqueue_new(repo, service, priority="high")
        enqueue_new(repo, service, priority="low")

        data = run(service.list_queue(priority="low"))

        assert data["pagination"]["total_count"] == 1
        assert data["statistics"]["total"] == 3
        assert data["statistics"]["by_priority"] == {
            "urgent": 0,
            "high": 2,
            "medium": 0,
            "low": 1,
        }
        assert data["statistics"]["by_status"]["queued"] == 3

    def test_empty_queue(self, service):
        data = run(service.list_queue())

        assert data["queue"] == []
        assert data["pagination"]["total_pages"] == 0
        assert data["pagination"]["has_next_page"] is False


# ============================================================================
# UPDATE / MOVE / REMOVE
# ============================================================================


class TestUpdateItem:
    """Tests for admin edits."""

    def test_edit_fields(self, repo, service):
        item = enqueue_new(repo, service)

        updated = run(service.update_item(item.problem_id, {
            "status": QueueStatus.IN_PROGRESS,
            "notes": "pairing with the irrigation team",
            "priority": "urgent",
        }))

        assert updated.status == "in_progress"
        assert updated.priority == "urgent"
        assert updated.notes == "pairing with the irrigation team"

    def test_move_up(self, repo, service):
        items = [enqueue_new(repo, service) for _ in range(4)]

        run(service.update_item(items[3].problem_id, {"queue_position": 1}))

        order = [i.problem_id for i in run(repo.list_queue_items())]
        assert order == [items[3].problem_id, items[0].problem_id,
                         items[1].problem_id, items[2].problem_id]
        assert [i.queue_position for i in run(repo.list_queue_items())] == [1, 2, 3, 4]

    def test_move_down(self, repo, service):
        items = [enqueue_new(repo, service) for _ in range(4)]

        run(service.update_item(items[0].problem_id, {"queue_position": 3}))

        order = [i.problem_id for i in run(repo.list_queue_items())]
        assert order == [items[1].problem_id, items[2].problem_id,
                         items[0].problem_id, items[3].problem_id]

    def test_move_past_end_is_clamped(self, repo, service):
        items = [enqueue_new(repo, service) for _ in range(3)]

        moved = run(service.update_item(items[0].problem_id, {"queue_position": 99}))

        assert moved.queue_position == 3
        assert sorted(i.queue_position for i in items) == [1, 2, 3]

    def test_only_moves_take_queue_lock(self, repo, service):
        item = enqueue_new(repo, service)

        run(service.update_item(item.problem_id, {"notes": "waiting on sensors"}))
        assert repo.queue_locks == 1

        run(service.update_item(item.problem_id, {"queue_position": 1}))
        assert repo.queue_locks == 2

    def test_unknown_item(self, service):
        with pytest.raises(QueueItemNotFound):
            run(service.update_item(uuid.uuid4(), {"notes": "x"}))


class TestRemoveItem:
    """Tests for removing queue items."""

    def test_later_items_move_up(self, repo, service):
        items = [enqueue_new(repo, service) for _ in range(3)]

        run(service.remove_item(items[0].problem_id))

        assert items[0].problem_id not in repo.queue
        assert [i.queue_position for i in run(repo.list_queue_items())] == [1, 2]
        assert repo.queue_locks == 4

    def test_unknown_item(self, service):
        with pytest.raises(QueueItemNotFound):
            run(service.remove_item(uuid.uuid4()))
