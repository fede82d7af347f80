"""Error taxonomy for the commitment protocol and relayer pipeline.

Four families, by where the failure originates:
1. Encoding errors — malformed input, detected locally, never submitted.
2. Trust errors — signature problems, detected locally, never submitted.
3. Transport errors — the ledger call failed, timed out, or the wait was
   abandoned. Resubmission is idempotent, so the caller may retry.
4. Integrity errors — the ledger emitted something other than what was
   submitted. Never retried, always surfaced verbatim.
"""

from __future__ import annotations

from typing import Any, Optional

from blackbox.models.relay import FailureReason


class BlackboxError(Exception):
    """Base class for all protocol errors."""

    reason: Optional[FailureReason] = None


# ------------------------------------------------------------------
# Encoding (local)
# ------------------------------------------------------------------

class EncodingError(BlackboxError, ValueError):
    """A transfer record cannot be encoded."""


class InvalidAddress(EncodingError):
    reason = FailureReason.INVALID_ADDRESS


class AmountOverflow(EncodingError):
    reason = FailureReason.AMOUNT_OVERFLOW


class InvalidTimestamp(EncodingError):
    reason = FailureReason.INVALID_TIMESTAMP


# ------------------------------------------------------------------
# Trust (local)
# ------------------------------------------------------------------

class TrustError(BlackboxError):
    """A signature does not establish the claimed sender."""


class InvalidSignature(TrustError):
    reason = FailureReason.INVALID_SIGNATURE


class AuthenticationFailed(TrustError):
    reason = FailureReason.AUTHENTICATION_FAILED


# ------------------------------------------------------------------
# Transport (ledger)
# ------------------------------------------------------------------

class TransportError(BlackboxError):
    """The ledger collaborator did not produce a receipt.

    Carries the transaction handle (if one was issued) and the deadline
    so the caller can decide whether to resubmit.
    """

    reason = FailureReason.SUBMISSION_REJECTED

    def __init__(
        self,
        message: str,
        handle: Any = None,
        timeout: Optional[float] = None,
    ) -> None:
        super().__init__(message)
        self.handle = handle
        self.timeout = timeout


class SubmissionRejected(TransportError):
    reason = FailureReason.SUBMISSION_REJECTED


class SubmissionTimeout(TransportError):
    reason = FailureReason.TIMEOUT


class SubmissionCancelled(TransportError):
    reason = FailureReason.CANCELLED


# ------------------------------------------------------------------
# Integrity
# ------------------------------------------------------------------

class IntegrityError(BlackboxError):
    """The ledger's record disagrees with the locally derived commitment."""


class CommitmentMismatch(IntegrityError):
    reason = FailureReason.MISMATCH

    def __init__(self, expected: bytes, emitted: Optional[bytes]) -> None:
        emitted_hex = "0x" + emitted.hex() if emitted is not None else "none"
        super().__init__(
            f"Ledger emitted {emitted_hex}, expected 0x{expected.hex()}"
        )
        self.expected = expected
        self.emitted = emitted


# ------------------------------------------------------------------
# Internal / configuration
# ------------------------------------------------------------------

class TransitionError(BlackboxError):
    """Raised when a relay state transition is not allowed."""


class ConfigError(BlackboxError):
    """Required configuration is missing or malformed."""
