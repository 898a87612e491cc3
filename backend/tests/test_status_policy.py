"""
Unit Tests for the problem status policy

Tests the pure lifecycle rules in app.workflow.policy:
- Transition table and terminal statuses
- Milestone selection (first threshold crossed, one step per update)
- Next-milestone lookup for the status view
- Development queue priority derived from votes

Usage:
    cd backend && pytest tests/test_status_policy.py -v
"""

import itertools
import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from app.workflow.policy import (
    ALLOWED_TRANSITIONS,
    STATUS_THRESHOLDS,
    TERMINAL_STATUSES,
    ProblemStatus,
    QueuePriority,
    allowed_targets,
    is_legal_transition,
    is_terminal,
    milestone_target,
    next_milestone,
    queue_priority_for,
)


# ============================================================================
# TRANSITION TABLE
# ============================================================================


class TestTransitionTable:
    """Tests for the allowed-transition graph."""

    def test_every_status_has_an_entry(self):
        """All six statuses appear in the transition table."""
        assert set(ALLOWED_TRANSITIONS) == set(ProblemStatus)

    def test_terminal_statuses(self):
        """Completed and Rejected have no outgoing transitions."""
        assert TERMINAL_STATUSES == {ProblemStatus.COMPLETED, ProblemStatus.REJECTED}
        assert is_terminal("Completed")
        assert is_terminal(ProblemStatus.REJECTED)
        assert not is_terminal("In Development")

    def test_linear_path_is_legal(self):
        """Each non-terminal status may advance one step along the happy path."""
        path = [
            ProblemStatus.PROPOSED,
            ProblemStatus.UNDER_REVIEW,
            ProblemStatus.PRIORITY_QUEUE,
            ProblemStatus.IN_DEVELOPMENT,
            ProblemStatus.COMPLETED,
        ]
        for current, following in zip(path, path[1:]):
            assert is_legal_transition(current, following)

    def test_rejection_allowed_from_every_open_status(self):
        """Any non-terminal problem may be rejected."""
        for status in ProblemStatus:
            if status in TERMINAL_STATUSES:
                continue
            assert is_legal_transition(status, ProblemStatus.REJECTED)

    def test_skipping_a_step_is_illegal(self):
        """Under Review cannot jump straight to In Development."""
        assert not is_legal_transition("Under Review", "In Development")
        assert not is_legal_transition("Proposed", "Priority Queue")

    def test_no_self_transitions(self):
        """A status never transitions to itself."""
        for status in ProblemStatus:
            assert not is_legal_transition(status, status)

    def test_legality_matches_table_for_all_pairs(self):
        """is_legal_transition agrees with the table for every pair."""
        for from_status, to_status in itertools.product(ProblemStatus, repeat=2):
            expected = to_status in ALLOWED_TRANSITIONS[from_status]
            assert is_legal_transition(from_status, to_status) is expected

    def test_allowed_targets_returns_copy(self):
        """Mutating the returned list does not change the table."""
        targets = allowed_targets("Proposed")
        targets.append(ProblemStatus.COMPLETED)
        assert ProblemStatus.COMPLETED not in ALLOWED_TRANSITIONS[ProblemStatus.PROPOSED]

    def test_unknown_status_raises(self):
        """Strings outside the enum are rejected."""
        with pytest.raises(ValueError):
            is_legal_transition("Archived", "Proposed")


# ============================================================================
# MILESTONES
# ============================================================================


class TestMilestoneTarget:
    """Tests for automatic vote-milestone selection."""

    def test_thresholds_are_fixed(self):
        assert STATUS_THRESHOLDS == {
            50: ProblemStatus.UNDER_REVIEW,
            75: ProblemStatus.PRIORITY_QUEUE,
            100: ProblemStatus.IN_DEVELOPMENT,
        }

    def test_crossing_first_threshold(self):
        """40 -> 55 on a Proposed problem moves it Under Review."""
        assert milestone_target("Proposed", 40, 55) == ProblemStatus.UNDER_REVIEW

    def test_landing_exactly_on_threshold_counts(self):
        assert milestone_target("Proposed", 49, 50) == ProblemStatus.UNDER_REVIEW

    def test_already_past_threshold_does_not_fire(self):
        """Threshold must lie strictly above the stored count."""
        assert milestone_target("Proposed", 50, 60) is None

    def test_one_step_when_several_thresholds_crossed(self):
        """0 -> 120 from Proposed only reaches Under Review."""
        assert milestone_target("Proposed", 0, 120) == ProblemStatus.UNDER_REVIEW

    def test_skips_thresholds_whose_target_is_illegal(self):
        """From Under Review, crossing 50 and 75 picks Priority Queue."""
        assert milestone_target("Under Review", 40, 80) == ProblemStatus.PRIORITY_QUEUE

    def test_illegal_only_target_returns_none(self):
        """Proposed crossing only the 75 threshold cannot skip a step."""
        assert milestone_target("Proposed", 60, 80) is None

    def test_terminal_never_moves(self):
        for status in TERMINAL_STATUSES:
            assert milestone_target(status, 0, 1000) is None

    def test_vote_decrease_never_fires(self):
        assert milestone_target("Under Review", 90, 10) is None

    def test_in_development_has_no_milestone(self):
        assert milestone_target("In Development", 99, 500) is None


class TestNextMilestone:
    """Tests for the next unreached threshold shown in the status view."""

    def test_next_for_new_problem(self):
        assert next_milestone("Proposed", 12) == (50, ProblemStatus.UNDER_REVIEW)

    def test_next_after_first_threshold(self):
        assert next_milestone("Under Review", 60) == (75, ProblemStatus.PRIORITY_QUEUE)

    def test_none_when_all_thresholds_passed(self):
        assert next_milestone("In Development", 150) is None

    def test_none_when_terminal(self):
        assert next_milestone("Rejected", 3) is None

    def test_fast_tracked_problem_reports_first_unreached_threshold(self):
        assert next_milestone("Priority Queue", 40) == (50, ProblemStatus.UNDER_REVIEW)


class TestQueuePriority:
    """Tests for the vote-derived queue priority."""

    @pytest.mark.parametrize(
        "votes,expected",
        [
            (0, QueuePriority.MEDIUM),
            (90, QueuePriority.MEDIUM),
            (99, QueuePriority.MEDIUM),
            (100, QueuePriority.HIGH),
            (250, QueuePriority.HIGH),
        ],
    )
    def test_priority_threshold(self, votes, expected):
        assert queue_priority_for(votes) == expected
