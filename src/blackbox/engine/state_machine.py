"""Relay state machine — enforces valid relay lifecycle transitions.

Relay lifecycle:
    RECEIVED → AUTHENTICATED → SUBMITTED → CONFIRMED
    Any non-terminal state → FAILED

State semantics:
- RECEIVED: relayer holds (record, signature) from an untrusted channel.
- AUTHENTICATED: the signature over commit(record) recovers to the sender.
- SUBMITTED: the 32-byte commitment was handed to the ledger.
- CONFIRMED: terminal — the ledger emitted exactly the submitted token.
- FAILED: terminal — carries a FailureReason.

Fail-closed: there is no edge from RECEIVED to SUBMITTED, so nothing
reaches the ledger without passing authentication.
"""

from __future__ import annotations

from blackbox.models.relay import RelayState, RelaySubmission


_TRANSITIONS: dict[RelayState, set[RelayState]] = {
    RelayState.RECEIVED: {RelayState.AUTHENTICATED, RelayState.FAILED},
    RelayState.AUTHENTICATED: {RelayState.SUBMITTED, RelayState.FAILED},
    RelayState.SUBMITTED: {RelayState.CONFIRMED, RelayState.FAILED},
    # Terminal states — no outgoing transitions
    RelayState.CONFIRMED: set(),
    RelayState.FAILED: set(),
}


class RelayStateMachine:
    """Validates and applies relay state transitions.

    Pure computation: side effects (audit events, ledger calls) are
    handled by the pipeline.
    """

    @staticmethod
    def validate_transition(
        submission: RelaySubmission,
        target: RelayState,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = submission.state
        allowed = _TRANSITIONS.get(current, set())

        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid relay transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(
        submission: RelaySubmission,
        target: RelayState,
    ) -> list[str]:
        """Validate and apply a state transition.

        On success mutates submission.state, appends to its history,
        and returns an empty list.
        """
        errors = RelayStateMachine.validate_transition(submission, target)
        if errors:
            return errors
        submission.state = target
        submission.history.append(target)
        return []

    @staticmethod
    def is_terminal(state: RelayState) -> bool:
        return state in (RelayState.CONFIRMED, RelayState.FAILED)

    @staticmethod
    def valid_transitions(state: RelayState) -> set[RelayState]:
        """Return the set of valid target states from the given state."""
        return set(_TRANSITIONS.get(state, set()))
