"""Tests for reqflow.workflow.fsm module."""

import pytest

from reqflow.lib.models import Stage
from reqflow.workflow.fsm import (
    InvalidTransition,
    RequestLifecycle,
    STATES,
    TRANSITIONS,
    TRIGGER_FOR,
    ROLE_FOR,
)


class TestTransitionTable:
    """Tests for the transition table definitions."""

    def test_all_stages_are_states(self):
        """Every Stage should be a machine state."""
        assert set(STATES) == {stage.value for stage in Stage}

    def test_six_role_gated_edges(self):
        assert len(TRANSITIONS) == 6

    def test_every_edge_has_a_role(self):
        for t in TRANSITIONS:
            assert t["role"] in {"product-owner", "dev", "requester"}

    def test_lookup_tables(self):
        assert TRIGGER_FOR[("Scoping", "Ready for Dev")] == "approve_scope"
        assert ROLE_FOR[("Review", "Completed")] == "requester"
        assert ("Intake", "Scoping") not in TRIGGER_FOR

    def test_completed_is_terminal(self):
        assert not any(t["source"] == "Completed" for t in TRANSITIONS)


class TestRequestLifecycle:
    """Tests for driving one request through the machine."""

    def test_initial_stage(self):
        lifecycle = RequestLifecycle("REQ-001", Stage.IN_PROGRESS)
        assert lifecycle.stage == Stage.IN_PROGRESS

    def test_move_returns_trigger(self):
        lifecycle = RequestLifecycle("REQ-001", Stage.READY_FOR_DEV)
        assert lifecycle.move_to(Stage.IN_PROGRESS) == "start_work"
        assert lifecycle.stage == Stage.IN_PROGRESS

    def test_unknown_edge_raises(self):
        """Skipping stages is not allowed."""
        lifecycle = RequestLifecycle("REQ-001", Stage.SCOPING)
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle.move_to(Stage.COMPLETED)
        assert "Scoping -> Completed" in str(exc_info.value)
        assert lifecycle.stage == Stage.SCOPING

    def test_same_stage_raises(self):
        lifecycle = RequestLifecycle("REQ-001", Stage.REVIEW)
        with pytest.raises(InvalidTransition):
            lifecycle.move_to(Stage.REVIEW)

    def test_approve_scope_requires_documents(self):
        lifecycle = RequestLifecycle("REQ-001", Stage.SCOPING)
        with pytest.raises(InvalidTransition) as exc_info:
            lifecycle.move_to(Stage.READY_FOR_DEV)
        assert "documents must be approved" in exc_info.value.reason
        assert lifecycle.stage == Stage.SCOPING

        lifecycle.move_to(Stage.READY_FOR_DEV, documents_approved=True)
        assert lifecycle.stage == Stage.READY_FOR_DEV

    @pytest.mark.parametrize("source,dest", [
        (Stage.READY_FOR_DEV, Stage.SCOPING),
        (Stage.REVIEW, Stage.IN_PROGRESS),
    ])
    def test_send_back_requires_note(self, source, dest):
        lifecycle = RequestLifecycle("REQ-001", source)
        with pytest.raises(InvalidTransition):
            lifecycle.move_to(dest, note="   ")
        lifecycle.move_to(dest, note="Acceptance criteria unclear")
        assert lifecycle.stage == dest

    def test_on_transition_callback(self):
        seen = []
        lifecycle = RequestLifecycle("REQ-001", Stage.IN_PROGRESS, on_transition=lambda *args: seen.append(args))
        lifecycle.move_to(Stage.REVIEW)
        assert seen == [("In Progress", "Review", "submit_for_review")]

    def test_available_triggers(self):
        lifecycle = RequestLifecycle("REQ-001", Stage.REVIEW)
        assert set(lifecycle.get_available_triggers()) == {"accept", "request_changes"}

    def test_transitions_are_logged(self, caplog):
        lifecycle = RequestLifecycle("REQ-007", Stage.REVIEW)
        with caplog.at_level("INFO"):
            lifecycle.move_to(Stage.COMPLETED)
        assert "[FSM] REQ-007: Review -> Completed (accept)" in caplog.text
