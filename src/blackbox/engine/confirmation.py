"""Confirmation verifier — checks the ledger emitted exactly what was submitted.

This is the end-to-end check that the transport and ledger did not
truncate, reorder, or substitute the token. A mismatch is an integrity
failure: it is reported verbatim and never retried or repaired.
"""

from __future__ import annotations

import hmac

from blackbox.errors import CommitmentMismatch
from blackbox.models.relay import AuditOutcome
from blackbox.models.transfer import COMMITMENT_SIZE, Commitment, SubmissionReceipt


def verify_receipt(expected: Commitment, receipt: SubmissionReceipt) -> AuditOutcome:
    emitted = receipt.emitted_commitment
    if emitted is None or len(emitted) != COMMITMENT_SIZE:
        return AuditOutcome.MISMATCH
    if hmac.compare_digest(bytes(expected), bytes(emitted)):
        return AuditOutcome.MATCH
    return AuditOutcome.MISMATCH


def require_match(expected: Commitment, receipt: SubmissionReceipt) -> None:
    """Raise CommitmentMismatch unless the receipt matches."""
    if verify_receipt(expected, receipt) is AuditOutcome.MISMATCH:
        raise CommitmentMismatch(bytes(expected), receipt.emitted_commitment)
