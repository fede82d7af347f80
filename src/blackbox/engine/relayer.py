"""Relayer pipeline — authenticates, submits, and confirms one commitment.

Each call to ``relay`` is an independent, stateless invocation driven
through the relay state machine:

    RECEIVED       authenticate(record, signature)
    AUTHENTICATED  ledger.submit(commitment)          (32 bytes, nothing else)
    SUBMITTED      ledger.await_receipt(handle, timeout)
                   verify_receipt(commitment, receipt)
    CONFIRMED | FAILED(reason)

Local failures (encoding, signature, authentication) end the relay before
the ledger is touched. Transport failures carry the handle and deadline.
A receipt mismatch is surfaced as FAILED(MISMATCH) with the receipt
attached verbatim. Nothing is retried automatically: resubmitting the same
commitment is idempotent, so retry policy belongs to the caller.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Optional

from blackbox.crypto.authenticator import SignatureLike, authenticate
from blackbox.crypto.codec import commit
from blackbox.engine.confirmation import verify_receipt
from blackbox.engine.state_machine import RelayStateMachine
from blackbox.errors import (
    EncodingError,
    TransitionError,
    TransportError,
    TrustError,
)
from blackbox.ledger.base import Ledger
from blackbox.models.relay import (
    AuditOutcome,
    FailureReason,
    RelayOutcome,
    RelayState,
    RelaySubmission,
)
from blackbox.models.transfer import SignedCommitment, TransferRecord
from blackbox.persistence.event_log import EventLog, RelayEventKind


class RelayerPipeline:
    """Relays signed transfer commitments to a ledger collaborator.

    Usage:
        pipeline = RelayerPipeline(InMemoryLedger(), event_log=EventLog())
        outcome = pipeline.relay(record, signature, timeout=30)
        if outcome.confirmed:
            print(outcome.receipt.block_reference)

    The pipeline holds no per-relay state, so one instance may serve
    concurrent relays from several threads.
    """

    def __init__(
        self,
        ledger: Ledger,
        event_log: Optional[EventLog] = None,
        relayer_id: str = "relayer",
    ) -> None:
        self._ledger = ledger
        self._event_log = event_log
        self._relayer_id = relayer_id

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    def relay(
        self,
        record: TransferRecord,
        signature: SignatureLike,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> RelayOutcome:
        """Run one submission from RECEIVED to a terminal state.

        ``timeout`` bounds the wait for the receipt, in seconds. ``cancel``
        lets the caller abandon the relay; a submission already handed to
        the ledger is not withdrawn.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")

        submission = RelaySubmission(submission_id=uuid.uuid4().hex)
        self._audit(submission, RelayEventKind.SUBMISSION_RECEIVED)

        # RECEIVED → AUTHENTICATED
        try:
            commitment = commit(record)
            authentic = authenticate(record, signature)
        except (EncodingError, TrustError) as exc:
            return self._fail(submission, exc.reason, str(exc))
        if not authentic:
            return self._fail(
                submission,
                FailureReason.AUTHENTICATION_FAILED,
                "Recovered signer does not match sender",
            )
        submission.commitment = commitment
        self._advance(submission, RelayState.AUTHENTICATED)
        self._audit(submission, RelayEventKind.SUBMISSION_AUTHENTICATED)

        if cancel is not None and cancel.is_set():
            return self._fail(
                submission, FailureReason.CANCELLED, "Cancelled before submission",
            )

        # AUTHENTICATED → SUBMITTED
        try:
            handle = self._ledger.submit(bytes(commitment))
        except TransportError as exc:
            return self._fail(submission, exc.reason, str(exc))
        submission.handle = handle
        self._advance(submission, RelayState.SUBMITTED)
        self._audit(submission, RelayEventKind.COMMITMENT_SUBMITTED)

        # SUBMITTED → CONFIRMED | FAILED
        try:
            receipt = self._ledger.await_receipt(handle, timeout, cancel)
        except TransportError as exc:
            return self._fail(submission, exc.reason, str(exc), timeout=timeout)
        submission.receipt = receipt

        audit = verify_receipt(commitment, receipt)
        if audit is AuditOutcome.MISMATCH:
            self._audit(submission, RelayEventKind.RECEIPT_MISMATCH)
            return self._fail(
                submission,
                FailureReason.MISMATCH,
                "Ledger emitted a value different from the submitted commitment",
                audit=audit,
            )

        self._advance(submission, RelayState.CONFIRMED)
        self._audit(submission, RelayEventKind.SUBMISSION_CONFIRMED)
        return self._outcome(submission, audit=audit)

    def relay_signed(
        self,
        record: TransferRecord,
        signed: SignedCommitment,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> RelayOutcome:
        """Relay a SignedCommitment. The commitment is re-derived from record."""
        return self.relay(record, signed.signature, timeout, cancel)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _advance(self, submission: RelaySubmission, target: RelayState) -> None:
        errors = RelayStateMachine.apply_transition(submission, target)
        if errors:
            raise TransitionError("; ".join(errors))

    def _fail(
        self,
        submission: RelaySubmission,
        reason: Optional[FailureReason],
        detail: str,
        timeout: Optional[float] = None,
        audit: Optional[AuditOutcome] = None,
    ) -> RelayOutcome:
        reason = reason or FailureReason.AUTHENTICATION_FAILED
        self._advance(submission, RelayState.FAILED)
        self._audit(
            submission,
            RelayEventKind.SUBMISSION_FAILED,
            reason=reason.value,
            timeout=timeout,
            detail=detail,
        )
        return self._outcome(
            submission, reason=reason, detail=detail, timeout=timeout, audit=audit,
        )

    @staticmethod
    def _outcome(
        submission: RelaySubmission,
        reason: Optional[FailureReason] = None,
        detail: str = "",
        timeout: Optional[float] = None,
        audit: Optional[AuditOutcome] = None,
    ) -> RelayOutcome:
        return RelayOutcome(
            submission_id=submission.submission_id,
            state=submission.state,
            reason=reason,
            commitment=submission.commitment,
            handle=submission.handle,
            receipt=submission.receipt,
            audit=audit,
            timeout=timeout,
            detail=detail,
            history=tuple(submission.history),
        )

    def _audit(
        self,
        submission: RelaySubmission,
        kind: RelayEventKind,
        **extra: Any,
    ) -> None:
        if self._event_log is None:
            return
        payload: dict[str, Any] = {
            "submission_id": submission.submission_id,
            "state": submission.state.value,
        }
        if submission.commitment is not None:
            payload["commitment"] = submission.commitment.hex()
        if submission.handle is not None:
            payload["tx_hash"] = submission.handle.hex()
        if submission.receipt is not None:
            payload["block_reference"] = submission.receipt.block_reference
            emitted = submission.receipt.emitted_commitment
            payload["emitted_commitment"] = "0x" + emitted.hex() if emitted is not None else None
        payload.update({k: v for k, v in extra.items() if v is not None})
        self._event_log.record(
            event_id=f"{submission.submission_id}:{kind.value}",
            event_kind=kind,
            actor_id=self._relayer_id,
            payload=payload,
        )
