"""Tests for the confirmation verifier — emitted token must equal the commitment."""

import pytest

from blackbox.crypto.codec import commit
from blackbox.engine.confirmation import require_match, verify_receipt
from blackbox.errors import CommitmentMismatch, IntegrityError
from blackbox.models.relay import AuditOutcome, FailureReason
from blackbox.models.transfer import SubmissionReceipt


def _receipt(emitted) -> SubmissionReceipt:
    return SubmissionReceipt(emitted_commitment=emitted, block_reference=7, tx_hash=b"\x01" * 32)


class TestVerifyReceipt:
    def test_match(self, vector_record) -> None:
        c = commit(vector_record)
        assert verify_receipt(c, _receipt(bytes(c))) is AuditOutcome.MATCH

    @pytest.mark.parametrize("mutate", [
        lambda b: b[:31],                      # truncated
        lambda b: b[::-1],                     # reordered
        lambda b: b"\x00" * 32,                # substituted
        lambda b: b + b"\x00",                 # extended
        lambda b: bytes([b[0] ^ 1]) + b[1:],   # single bit flip
    ])
    def test_mismatch(self, vector_record, mutate) -> None:
        c = commit(vector_record)
        assert verify_receipt(c, _receipt(mutate(bytes(c)))) is AuditOutcome.MISMATCH

    def test_missing_event_is_mismatch(self, vector_record) -> None:
        assert verify_receipt(commit(vector_record), _receipt(None)) is AuditOutcome.MISMATCH


class TestRequireMatch:
    def test_passes_on_match(self, vector_record) -> None:
        c = commit(vector_record)
        require_match(c, _receipt(bytes(c)))

    def test_raises_with_both_values(self, vector_record) -> None:
        c = commit(vector_record)
        with pytest.raises(CommitmentMismatch) as exc_info:
            require_match(c, _receipt(b"\x00" * 32))
        assert exc_info.value.expected == bytes(c)
        assert exc_info.value.emitted == b"\x00" * 32
        assert exc_info.value.reason is FailureReason.MISMATCH
        assert isinstance(exc_info.value, IntegrityError)

    def test_missing_event_message(self, vector_record) -> None:
        with pytest.raises(CommitmentMismatch, match="emitted none"):
            require_match(commit(vector_record), _receipt(None))
