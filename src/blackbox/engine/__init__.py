"""Relay engine — state machine, pipeline, confirmation verifier."""

from blackbox.engine.confirmation import require_match, verify_receipt
from blackbox.engine.relayer import RelayerPipeline
from blackbox.engine.state_machine import RelayStateMachine

__all__ = ["RelayStateMachine", "RelayerPipeline", "require_match", "verify_receipt"]
