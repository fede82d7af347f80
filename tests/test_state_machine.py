"""Tests for the relay state machine — lifecycle transitions."""

import pytest

from blackbox.engine.state_machine import RelayStateMachine
from blackbox.models.relay import RelayState, RelaySubmission


def _make_submission(state: RelayState = RelayState.RECEIVED) -> RelaySubmission:
    return RelaySubmission(submission_id="S-001", state=state)


class TestValidTransitions:
    @pytest.mark.parametrize("current,target", [
        (RelayState.RECEIVED, RelayState.AUTHENTICATED),
        (RelayState.RECEIVED, RelayState.FAILED),
        (RelayState.AUTHENTICATED, RelayState.SUBMITTED),
        (RelayState.AUTHENTICATED, RelayState.FAILED),
        (RelayState.SUBMITTED, RelayState.CONFIRMED),
        (RelayState.SUBMITTED, RelayState.FAILED),
    ])
    def test_allowed(self, current: RelayState, target: RelayState) -> None:
        errors = RelayStateMachine.validate_transition(_make_submission(current), target)
        assert errors == []

    def test_apply_records_history(self) -> None:
        submission = _make_submission()
        for target in (RelayState.AUTHENTICATED, RelayState.SUBMITTED, RelayState.CONFIRMED):
            assert RelayStateMachine.apply_transition(submission, target) == []
        assert submission.state == RelayState.CONFIRMED
        assert submission.history == [
            RelayState.RECEIVED,
            RelayState.AUTHENTICATED,
            RelayState.SUBMITTED,
            RelayState.CONFIRMED,
        ]


class TestInvalidTransitions:
    def test_cannot_submit_unauthenticated(self) -> None:
        """No path from RECEIVED straight to the ledger."""
        submission = _make_submission(RelayState.RECEIVED)
        errors = RelayStateMachine.apply_transition(submission, RelayState.SUBMITTED)
        assert len(errors) == 1
        assert "received → submitted" in errors[0]
        assert submission.state == RelayState.RECEIVED
        assert submission.history == [RelayState.RECEIVED]

    def test_cannot_confirm_without_submission(self) -> None:
        errors = RelayStateMachine.validate_transition(
            _make_submission(RelayState.AUTHENTICATED), RelayState.CONFIRMED,
        )
        assert errors

    @pytest.mark.parametrize("terminal", [RelayState.CONFIRMED, RelayState.FAILED])
    def test_terminal_states_have_no_exits(self, terminal: RelayState) -> None:
        for target in RelayState:
            errors = RelayStateMachine.validate_transition(_make_submission(terminal), target)
            assert errors, f"{terminal.value} → {target.value} should be rejected"

    def test_error_lists_allowed_targets(self) -> None:
        errors = RelayStateMachine.validate_transition(
            _make_submission(RelayState.SUBMITTED), RelayState.AUTHENTICATED,
        )
        assert "[confirmed, failed]" in errors[0]


class TestQueries:
    def test_is_terminal(self) -> None:
        assert RelayStateMachine.is_terminal(RelayState.CONFIRMED)
        assert RelayStateMachine.is_terminal(RelayState.FAILED)
        assert not RelayStateMachine.is_terminal(RelayState.SUBMITTED)

    def test_valid_transitions_returns_copy(self) -> None:
        targets = RelayStateMachine.valid_transitions(RelayState.RECEIVED)
        assert targets == {RelayState.AUTHENTICATED, RelayState.FAILED}
        targets.add(RelayState.CONFIRMED)
        assert RelayState.CONFIRMED not in RelayStateMachine.valid_transitions(RelayState.RECEIVED)
