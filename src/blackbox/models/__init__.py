"""Value types for transfers, commitments, and relay outcomes."""

from blackbox.models.transfer import (
    Commitment,
    SignedCommitment,
    SubmissionReceipt,
    TransactionHandle,
    TransferRecord,
)
from blackbox.models.relay import (
    AuditOutcome,
    FailureReason,
    RelayOutcome,
    RelayState,
    RelaySubmission,
)

__all__ = [
    "AuditOutcome",
    "Commitment",
    "FailureReason",
    "RelayOutcome",
    "RelayState",
    "RelaySubmission",
    "SignedCommitment",
    "SubmissionReceipt",
    "TransactionHandle",
    "TransferRecord",
]
