"""Tests for the relayer pipeline — authentication, submission, confirmation."""

import dataclasses
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from blackbox.crypto.authenticator import sign, sign_commitment
from blackbox.crypto.codec import commit, encode
from blackbox.engine.relayer import RelayerPipeline
from blackbox.errors import TransportError
from blackbox.ledger.memory import InMemoryLedger
from blackbox.models.relay import AuditOutcome, FailureReason, RelayState
from blackbox.models.transfer import TransferRecord
from blackbox.persistence.event_log import EventLog, RelayEventKind

from conftest import FakeClock, SENDER_ADDRESS, VECTOR_RECIPIENT


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def pipeline(ledger: InMemoryLedger, event_log: EventLog) -> RelayerPipeline:
    return RelayerPipeline(ledger, event_log=event_log)


class TestHappyPath:
    def test_end_to_end_confirmed(self, pipeline, ledger, sender_credential, record) -> None:
        expected = commit(record)
        outcome = pipeline.relay(record, sign(sender_credential, expected), timeout=30)

        assert outcome.confirmed
        assert outcome.state == RelayState.CONFIRMED
        assert outcome.reason is None
        assert outcome.audit is AuditOutcome.MATCH
        assert outcome.commitment == expected
        assert outcome.receipt.emitted_commitment == bytes(expected)
        assert outcome.handle is not None
        assert outcome.history == (
            RelayState.RECEIVED,
            RelayState.AUTHENTICATED,
            RelayState.SUBMITTED,
            RelayState.CONFIRMED,
        )

    def test_relay_signed(self, pipeline, sender_credential, record) -> None:
        outcome = pipeline.relay_signed(record, sign_commitment(sender_credential, record), timeout=30)
        assert outcome.confirmed

    def test_waits_for_slow_ledger(self, sender_credential, record, clock: FakeClock) -> None:
        ledger = InMemoryLedger(confirm_after=5, poll_interval=1.0, clock=clock, sleep=clock.sleep)
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.confirmed
        assert clock.sleeps == [1.0] * 5

    def test_audit_trail(self, pipeline, event_log, sender_credential, record) -> None:
        outcome = pipeline.relay(record, sign(sender_credential, commit(record)), timeout=30)
        kinds = [e.event_kind for e in event_log.events_for(outcome.submission_id)]
        assert kinds == [
            RelayEventKind.SUBMISSION_RECEIVED,
            RelayEventKind.SUBMISSION_AUTHENTICATED,
            RelayEventKind.COMMITMENT_SUBMITTED,
            RelayEventKind.SUBMISSION_CONFIRMED,
        ]
        confirmed = event_log.events(RelayEventKind.SUBMISSION_CONFIRMED)[0]
        assert confirmed.payload["commitment"] == outcome.commitment.hex()
        assert confirmed.payload["block_reference"] == outcome.receipt.block_reference

    def test_works_without_event_log(self, ledger, sender_credential, record) -> None:
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.confirmed


class TestIdempotentSubmission:
    def test_same_commitment_twice(self, pipeline, ledger, sender_credential, record) -> None:
        sig = sign(sender_credential, commit(record))
        first = pipeline.relay(record, sig, timeout=30)
        second = pipeline.relay(record, sig, timeout=30)

        assert first.confirmed and second.confirmed
        assert first.submission_id != second.submission_id
        assert first.handle != second.handle
        assert first.commitment == second.commitment
        assert [e.commitment for e in ledger.events] == [bytes(first.commitment)] * 2


class TestPrivacyBoundary:
    @pytest.mark.parametrize("amount,timestamp", [
        (1000, 1700000000),
        (0, 0),
        (2**256 - 1, 1),
        (123456789, 1800000000),
    ])
    def test_only_commitment_reaches_ledger(
        self, ledger, pipeline, sender_credential, record, amount, timestamp,
    ) -> None:
        r = dataclasses.replace(record, amount=amount, timestamp=timestamp)
        pipeline.relay(r, sign(sender_credential, commit(r)), timeout=30)

        assert ledger.calls == [bytes(commit(r))]
        payload = ledger.calls[0]
        assert len(payload) == 32
        encoded = encode(r)
        assert bytes.fromhex(SENDER_ADDRESS[2:]) not in payload
        assert VECTOR_RECIPIENT not in payload
        assert encoded[64:96] not in payload

    def test_audit_log_holds_no_record_fields(self, pipeline, event_log, sender_credential, record) -> None:
        pipeline.relay(record, sign(sender_credential, commit(record)), timeout=30)
        dumped = repr([e.payload for e in event_log.events()]).lower()
        assert SENDER_ADDRESS[2:].lower() not in dumped
        assert VECTOR_RECIPIENT.hex() not in dumped
        assert "1700000000" not in dumped


class TestLocalFailures:
    def test_signature_over_different_commitment(self, pipeline, ledger, sender_credential, record) -> None:
        other = commit(dataclasses.replace(record, amount=record.amount + 1))
        outcome = pipeline.relay(record, sign(sender_credential, other), timeout=30)

        assert outcome.failed
        assert outcome.reason is FailureReason.AUTHENTICATION_FAILED
        assert outcome.history == (RelayState.RECEIVED, RelayState.FAILED)
        assert not outcome.submitted
        assert ledger.calls == []

    def test_signature_from_other_key(self, pipeline, ledger, other_credential, record) -> None:
        outcome = pipeline.relay(record, sign(other_credential, commit(record)), timeout=30)
        assert outcome.reason is FailureReason.AUTHENTICATION_FAILED
        assert ledger.calls == []

    def test_malformed_signature(self, pipeline, ledger, record) -> None:
        outcome = pipeline.relay(record, b"\x00" * 12, timeout=30)
        assert outcome.reason is FailureReason.INVALID_SIGNATURE
        assert outcome.reason.category == "trust"
        assert ledger.calls == []

    def test_invalid_address(self, pipeline, ledger, sender_credential, record) -> None:
        sig = sign(sender_credential, commit(record))
        outcome = pipeline.relay(dataclasses.replace(record, recipient="0xdead"), sig, timeout=30)
        assert outcome.reason is FailureReason.INVALID_ADDRESS
        assert outcome.commitment is None
        assert ledger.calls == []

    def test_amount_overflow(self, pipeline, ledger, sender_credential, record) -> None:
        sig = sign(sender_credential, commit(record))
        outcome = pipeline.relay(dataclasses.replace(record, amount=2**256), sig, timeout=30)
        assert outcome.reason is FailureReason.AMOUNT_OVERFLOW
        assert outcome.reason.category == "local"
        assert not outcome.reason.retryable
        assert ledger.calls == []

    def test_failure_is_audited(self, pipeline, event_log, record) -> None:
        outcome = pipeline.relay(record, b"\x00" * 12, timeout=30)
        failed = event_log.events(RelayEventKind.SUBMISSION_FAILED)
        assert len(failed) == 1
        assert failed[0].payload["reason"] == "invalid_signature"
        assert failed[0].payload["submission_id"] == outcome.submission_id

    def test_rejects_non_positive_timeout(self, pipeline, sender_credential, record) -> None:
        with pytest.raises(ValueError):
            pipeline.relay(record, sign(sender_credential, commit(record)), timeout=0)


class TestTransportFailures:
    def test_submission_rejected(self, sender_credential, record) -> None:
        ledger = InMemoryLedger(reject_with="insufficient funds for gas")
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.reason is FailureReason.SUBMISSION_REJECTED
        assert outcome.reason.retryable
        assert "insufficient funds" in outcome.detail
        assert outcome.history == (RelayState.RECEIVED, RelayState.AUTHENTICATED, RelayState.FAILED)

    def test_any_transport_error_on_submit_ends_failed(self, event_log, sender_credential, record) -> None:
        class _Unreachable(InMemoryLedger):
            def submit(self, token: bytes):
                raise TransportError("node unreachable")

        outcome = RelayerPipeline(_Unreachable(), event_log=event_log).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.failed
        assert outcome.reason is FailureReason.SUBMISSION_REJECTED
        assert len(event_log.events(RelayEventKind.SUBMISSION_FAILED)) == 1

    def test_timeout_at_deadline(self, sender_credential, record, clock: FakeClock) -> None:
        ledger = InMemoryLedger(auto_confirm=False, poll_interval=1.0, clock=clock, sleep=clock.sleep)
        start = clock()
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.reason is FailureReason.TIMEOUT
        assert outcome.timeout == 30
        assert outcome.handle is not None
        assert outcome.submitted
        # Not before the deadline, and not after it.
        assert clock() == start + 30
        assert sum(clock.sleeps) == 30

    def test_cancel_before_submission(self, pipeline, ledger, sender_credential, record) -> None:
        cancel = threading.Event()
        cancel.set()
        outcome = pipeline.relay(record, sign(sender_credential, commit(record)), timeout=30, cancel=cancel)
        assert outcome.reason is FailureReason.CANCELLED
        assert ledger.calls == []

    def test_cancel_during_wait(self, sender_credential, record, clock: FakeClock) -> None:
        cancel = threading.Event()

        def _sleep(seconds: float) -> None:
            clock.sleep(seconds)
            cancel.set()

        ledger = InMemoryLedger(auto_confirm=False, poll_interval=1.0, clock=clock, sleep=_sleep)
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30, cancel=cancel,
        )
        assert outcome.reason is FailureReason.CANCELLED
        assert outcome.submitted
        # The submission is not withdrawn; it can still be mined later.
        assert ledger.mine_pending() == 1
        assert ledger.events[0].commitment == bytes(commit(record))


class TestIntegrityFailures:
    def test_mismatch_is_distinct_and_verbatim(self, event_log, sender_credential, record) -> None:
        ledger = InMemoryLedger(tamper=lambda t: t[::-1])
        outcome = RelayerPipeline(ledger, event_log=event_log).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.failed
        assert outcome.reason is FailureReason.MISMATCH
        assert outcome.reason is not FailureReason.SUBMISSION_REJECTED
        assert outcome.audit is AuditOutcome.MISMATCH
        assert not outcome.reason.retryable
        assert outcome.receipt.emitted_commitment == bytes(commit(record))[::-1]
        assert len(event_log.events(RelayEventKind.RECEIPT_MISMATCH)) == 1

    def test_missing_event_is_mismatch(self, sender_credential, record) -> None:
        ledger = InMemoryLedger(tamper=lambda t: None)
        outcome = RelayerPipeline(ledger).relay(
            record, sign(sender_credential, commit(record)), timeout=30,
        )
        assert outcome.reason is FailureReason.MISMATCH
        assert outcome.receipt.emitted_commitment is None


class TestConcurrentRelays:
    def test_independent_relays_in_parallel(self, pipeline, ledger, event_log, sender_credential, record) -> None:
        records = [dataclasses.replace(record, amount=i) for i in range(16)]
        signatures = [sign(sender_credential, commit(r)) for r in records]

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(lambda a: pipeline.relay(a[0], a[1], timeout=30), zip(records, signatures)))

        assert all(o.confirmed for o in outcomes)
        assert {o.commitment for o in outcomes} == {commit(r) for r in records}
        assert len(ledger.events) == 16
        assert event_log.count == 16 * 4
