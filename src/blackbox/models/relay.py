"""Relay lifecycle model — states, failure reasons, and outcomes.

Relay lifecycle:
    RECEIVED → AUTHENTICATED → SUBMITTED → CONFIRMED
    RECEIVED | AUTHENTICATED | SUBMITTED → FAILED

CONFIRMED and FAILED are terminal.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional

from blackbox.models.transfer import (
    Commitment,
    SubmissionReceipt,
    TransactionHandle,
)


class RelayState(str, enum.Enum):
    RECEIVED = "received"
    AUTHENTICATED = "authenticated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class FailureReason(str, enum.Enum):
    """Why a relay ended in FAILED."""
    INVALID_ADDRESS = "invalid_address"
    AMOUNT_OVERFLOW = "amount_overflow"
    INVALID_TIMESTAMP = "invalid_timestamp"
    INVALID_SIGNATURE = "invalid_signature"
    AUTHENTICATION_FAILED = "authentication_failed"
    SUBMISSION_REJECTED = "submission_rejected"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    MISMATCH = "mismatch"

    @property
    def category(self) -> str:
        return _CATEGORIES[self]

    @property
    def retryable(self) -> bool:
        """Transport failures only; resubmission is idempotent."""
        return self.category == "transport"


_CATEGORIES: dict[FailureReason, str] = {
    FailureReason.INVALID_ADDRESS: "local",
    FailureReason.AMOUNT_OVERFLOW: "local",
    FailureReason.INVALID_TIMESTAMP: "local",
    FailureReason.INVALID_SIGNATURE: "trust",
    FailureReason.AUTHENTICATION_FAILED: "trust",
    FailureReason.SUBMISSION_REJECTED: "transport",
    FailureReason.TIMEOUT: "transport",
    FailureReason.CANCELLED: "transport",
    FailureReason.MISMATCH: "integrity",
}


class AuditOutcome(str, enum.Enum):
    """Result of comparing an emitted token with the expected commitment."""
    MATCH = "match"
    MISMATCH = "mismatch"


@dataclass
class RelaySubmission:
    """Mutable per-invocation state of one relay.

    Lives only for the duration of a single pipeline call.
    """
    submission_id: str
    state: RelayState = RelayState.RECEIVED
    commitment: Optional[Commitment] = None
    handle: Optional[TransactionHandle] = None
    receipt: Optional[SubmissionReceipt] = None
    history: list[RelayState] = field(default_factory=lambda: [RelayState.RECEIVED])


@dataclass(frozen=True)
class RelayOutcome:
    """Terminal result of one pipeline invocation."""
    submission_id: str
    state: RelayState
    reason: Optional[FailureReason] = None
    commitment: Optional[Commitment] = None
    handle: Optional[TransactionHandle] = None
    receipt: Optional[SubmissionReceipt] = None
    audit: Optional[AuditOutcome] = None
    timeout: Optional[float] = None
    detail: str = ""
    history: tuple[RelayState, ...] = ()

    @property
    def confirmed(self) -> bool:
        return self.state == RelayState.CONFIRMED

    @property
    def failed(self) -> bool:
        return self.state == RelayState.FAILED

    @property
    def submitted(self) -> bool:
        """True if the commitment reached the ledger collaborator."""
        return RelayState.SUBMITTED in self.history
