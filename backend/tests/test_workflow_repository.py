"""
Integration Tests for SqlWorkflowRepository

Runs the SQLAlchemy repository and the services on top of it against a
file-backed SQLite database (aiosqlite driver):
- Status-guarded UPDATE and stale-read conflicts
- Committed transition followed by the event-bus subscribers
- Dense queue positions after bulk shifts
- Workflow logs outliving attempts to delete their problem

The notification tables use PostgreSQL-only column types and are not
created, so the notification subscriber fails here with a real driver
error.

Usage:
    cd backend && pytest tests/test_workflow_repository.py -v
"""

import asyncio
import os
import sys
import uuid

import pytest
from sqlalchemy import delete, event
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import create_async_engine

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.database import Base, create_session_factory
from app.models.db.development_queue import DevelopmentQueueItem
from app.models.db.problem import Problem
from app.models.db.user import Category, User
from app.models.db.workflow_log import WorkflowLog
from app.repositories.workflow_repository import SqlWorkflowRepository
from app.services.development_queue_service import DevelopmentQueueService
from app.services.workflow_service import WorkflowService, build_workflow_event_bus
from app.workflow.errors import TransitionConflict
from app.workflow.events import WorkflowEventBus

WORKFLOW_TABLES = [
    User.__table__,
    Category.__table__,
    Problem.__table__,
    WorkflowLog.__table__,
    DevelopmentQueueItem.__table__,
]


# ============================================================================
# TEST HELPERS
# ============================================================================


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def run_against_database(tmp_path, scenario):
    """Create the workflow tables in a fresh database and run *scenario*."""

    async def main():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}")
        event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all, tables=WORKFLOW_TABLES)
            return await scenario(create_session_factory(engine))
        finally:
            await engine.dispose()

    return asyncio.run(main())


async def seed_user(session_factory, role="user") -> uuid.UUID:
    async with session_factory() as db:
        user = User(id=uuid.uuid4(), email=f"{role}-{uuid.uuid4().hex[:6]}@example.org", role=role)
        db.add(user)
        await db.commit()
        return user.id


async def seed_problem(session_factory, status="Proposed", vote_count=40) -> uuid.UUID:
    proposer_id = await seed_user(session_factory)
    async with session_factory() as db:
        problem = Problem(
            title="Rainwater sensors for community gardens",
            status=status,
            vote_count=vote_count,
            proposer_id=proposer_id,
        )
        db.add(problem)
        await db.commit()
        return problem.id


@pytest.fixture
def database(tmp_path):
    return lambda scenario: run_against_database(tmp_path, scenario)


# ============================================================================
# STATUS GUARD
# ============================================================================


class TestStatusGuard:
    """Tests for the conditional status UPDATE."""

    def test_guard_matches_only_expected_status(self, database):
        async def scenario(session_factory):
            problem_id = await seed_problem(session_factory)
            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                first = await repo.update_problem_status(problem_id, "Proposed", "Under Review")
                again = await repo.update_problem_status(problem_id, "Proposed", "Rejected")
                await repo.commit()

            async with session_factory() as db:
                problem = await SqlWorkflowRepository(db).get_problem(problem_id)
                return first, again, problem.status

        first, again, stored = database(scenario)

        assert first is True
        assert again is False
        assert stored == "Under Review"

    def test_stale_read_raises_conflict_without_log(self, database):
        async def scenario(session_factory):
            problem_id = await seed_problem(session_factory, vote_count=40)
            admin_id = await seed_user(session_factory, role="admin")

            async with session_factory() as db_a, session_factory() as db_b:
                repo_a = SqlWorkflowRepository(db_a)
                stale = await repo_a.get_problem(problem_id)
                assert stale.status == "Proposed"

                # A second writer rejects the problem after the first read
                await WorkflowService(SqlWorkflowRepository(db_b), WorkflowEventBus()).update_status(
                    problem_id,
                    40,
                    admin_override=True,
                    target_status="Rejected",
                    reason="duplicate of an existing proposal",
                    actor_id=admin_id,
                )

                with pytest.raises(TransitionConflict):
                    await WorkflowService(repo_a, WorkflowEventBus()).update_status(problem_id, 55)

            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                logs = await repo.list_workflow_logs(problem_id)
                problem = await repo.get_problem(problem_id)
                return problem.status, [(log.previous_status, log.new_status) for log in logs]

        status, transitions = database(scenario)

        assert status == "Rejected"
        assert transitions == [("Proposed", "Rejected")]


# ============================================================================
# TRANSITION AND SUBSCRIBERS
# ============================================================================


class TestCommittedTransition:
    """Tests for a milestone transition with the production event bus."""

    def test_in_development_problem_is_queued(self, database):
        async def scenario(session_factory):
            problem_id = await seed_problem(session_factory, status="Priority Queue", vote_count=90)

            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                service = WorkflowService(repo, build_workflow_event_bus(repo))
                result = await service.update_status(problem_id, 100)

            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                problem = await repo.get_problem(problem_id)
                item = await repo.get_queue_item(problem_id)
                logs = await repo.list_workflow_logs(problem_id)
                return result, problem.status, item, logs

        result, status, item, logs = database(scenario)

        assert result.status_changed is True
        assert result.new_status == "In Development"
        assert status == "In Development"
        assert len(logs) == 1
        assert logs[0].trigger_type == "milestone_triggered"
        assert logs[0].triggered_by is None

        assert result.added_to_dev_queue is True
        assert item.queue_position == 1
        assert item.priority == "high"
        assert item.added_by == "milestone_triggered"

    def test_driver_errors_are_not_returned_to_caller(self, database):
        async def scenario(session_factory):
            problem_id = await seed_problem(session_factory, vote_count=40)
            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                service = WorkflowService(repo, build_workflow_event_bus(repo))
                return await service.update_status(problem_id, 55)

        result = database(scenario)

        assert result.new_status == "Under Review"
        assert result.notification_sent is False
        assert result.notification_error == "notification failed (OperationalError)"
        assert "notification_preferences" not in result.notification_error


# ============================================================================
# QUEUE POSITIONS
# ============================================================================


class TestQueuePositions:
    """Tests for bulk position shifts against the database."""

    def test_positions_stay_dense(self, database):
        async def scenario(session_factory):
            problem_ids = [
                await seed_problem(session_factory, status="In Development", vote_count=100)
                for _ in range(4)
            ]
            low, medium, high, medium_late = problem_ids

            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                service = DevelopmentQueueService(repo)
                await service.enqueue(low, priority="low")
                await service.enqueue(medium, priority="medium")
                await service.enqueue(high, priority="high")
                await service.enqueue(medium_late, priority="medium")
                await repo.commit()

            async def snapshot():
                async with session_factory() as db:
                    items = await SqlWorkflowRepository(db).list_queue_items()
                    return [(item.problem_id, item.queue_position) for item in items]

            after_insert = await snapshot()

            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                service = DevelopmentQueueService(repo)
                await service.remove_item(medium)
                await service.update_item(low, {"queue_position": 1})
                await repo.commit()

            return problem_ids, after_insert, await snapshot()

        problem_ids, after_insert, after_edit = database(scenario)
        low, medium, high, medium_late = problem_ids

        assert after_insert == [(high, 1), (medium, 2), (medium_late, 3), (low, 4)]
        assert after_edit == [(low, 1), (high, 2), (medium_late, 3)]


# ============================================================================
# AUDIT TRAIL
# ============================================================================


class TestAuditTrailRetention:
    """Tests that logged problems cannot take their history with them."""

    def test_problem_with_history_cannot_be_deleted(self, database):
        async def scenario(session_factory):
            problem_id = await seed_problem(session_factory, vote_count=40)
            async with session_factory() as db:
                repo = SqlWorkflowRepository(db)
                await repo.update_problem_status(problem_id, "Proposed", "Under Review")
                await repo.add_workflow_log(
                    problem_id=problem_id,
                    previous_status="Proposed",
                    new_status="Under Review",
                    trigger_type="milestone_triggered",
                    vote_count_at_change=55,
                )
                await repo.commit()

            async with session_factory() as db:
                with pytest.raises(IntegrityError):
                    await db.execute(delete(Problem).where(Problem.id == problem_id))
                    await db.commit()
                await db.rollback()

            async with session_factory() as db:
                return await SqlWorkflowRepository(db).list_workflow_logs(problem_id)

        logs = database(scenario)

        assert len(logs) == 1
