"""In-memory ledger — an append-only event log that re-emits tokens verbatim.

Stands in for the PrivateTransferVault contract in tests and the offline
demo. Every payload handed to ``submit`` is kept in ``calls`` so the
privacy boundary can be inspected.

Fault injection:
- auto_confirm=False: submissions are accepted but never mined.
- reject_with="...": every submit fails with SubmissionRejected.
- tamper=fn: the emitted token is fn(token) instead of token.
- confirm_after=n: a receipt appears only after n unsuccessful polls.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from eth_utils import keccak

from blackbox.errors import SubmissionRejected
from blackbox.ledger.base import EVENT_NAME, wait_for
from blackbox.models.transfer import (
    COMMITMENT_SIZE,
    SubmissionReceipt,
    TransactionHandle,
)


@dataclass(frozen=True)
class LedgerEvent:
    """A single emitted event: PrivateTransfer(commitment)."""
    name: str
    commitment: bytes
    block_number: int
    tx_hash: bytes


class InMemoryLedger:
    """Thread-safe append-only ledger with one entry point."""

    def __init__(
        self,
        auto_confirm: bool = True,
        reject_with: Optional[str] = None,
        tamper: Optional[Callable[[bytes], Optional[bytes]]] = None,
        confirm_after: int = 0,
        poll_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._auto_confirm = auto_confirm
        self._reject_with = reject_with
        self._tamper = tamper
        self._confirm_after = confirm_after
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

        self._lock = threading.Lock()
        self._calls: list[bytes] = []
        self._events: list[LedgerEvent] = []
        self._pending: dict[bytes, bytes] = {}
        self._receipts: dict[bytes, SubmissionReceipt] = {}
        self._polls: dict[bytes, int] = {}
        self._block_number = 0

    # ------------------------------------------------------------------
    # Ledger protocol
    # ------------------------------------------------------------------

    def submit(self, token: bytes) -> TransactionHandle:
        with self._lock:
            self._calls.append(bytes(token))
            if self._reject_with is not None:
                raise SubmissionRejected(self._reject_with)
            if len(token) != COMMITMENT_SIZE:
                raise SubmissionRejected(
                    f"Token must be {COMMITMENT_SIZE} bytes, got {len(token)}"
                )
            # Sequence number keeps handles distinct for identical tokens.
            tx_hash = keccak(bytes(token) + len(self._calls).to_bytes(32, "big"))
            self._pending[tx_hash] = bytes(token)
            self._polls[tx_hash] = 0
            if self._auto_confirm and self._confirm_after == 0:
                self._mine(tx_hash)
        return TransactionHandle(tx_hash=tx_hash)

    def await_receipt(
        self,
        handle: TransactionHandle,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> SubmissionReceipt:
        with self._lock:
            known = handle.tx_hash in self._pending or handle.tx_hash in self._receipts
        if not known:
            raise SubmissionRejected(f"Unknown transaction {handle.hex()}", handle=handle)
        return wait_for(
            lambda: self._fetch(handle.tx_hash),
            timeout=timeout,
            poll_interval=self._poll_interval,
            cancel=cancel,
            clock=self._clock,
            sleep=self._sleep,
            handle=handle,
        )

    # ------------------------------------------------------------------
    # Inspection and manual control
    # ------------------------------------------------------------------

    @property
    def calls(self) -> list[bytes]:
        """Every payload ever passed to submit, in order."""
        with self._lock:
            return list(self._calls)

    @property
    def events(self) -> list[LedgerEvent]:
        """Every event emitted so far, in block order."""
        with self._lock:
            return list(self._events)

    @property
    def block_number(self) -> int:
        return self._block_number

    def mine_pending(self) -> int:
        """Mine all pending submissions. Returns how many were mined."""
        with self._lock:
            pending = list(self._pending)
            for tx_hash in pending:
                self._mine(tx_hash)
        return len(pending)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fetch(self, tx_hash: bytes) -> Optional[SubmissionReceipt]:
        with self._lock:
            receipt = self._receipts.get(tx_hash)
            if receipt is not None:
                return receipt
            self._polls[tx_hash] += 1
            if (
                self._auto_confirm
                and self._confirm_after
                and self._polls[tx_hash] > self._confirm_after
            ):
                return self._mine(tx_hash)
            return None

    def _mine(self, tx_hash: bytes) -> SubmissionReceipt:
        """Append the event and produce its receipt. Caller holds the lock."""
        token = self._pending.pop(tx_hash)
        emitted = self._tamper(token) if self._tamper is not None else token
        self._block_number += 1
        if emitted is not None:
            self._events.append(
                LedgerEvent(
                    name=EVENT_NAME,
                    commitment=emitted,
                    block_number=self._block_number,
                    tx_hash=tx_hash,
                )
            )
        receipt = SubmissionReceipt(
            emitted_commitment=emitted,
            block_reference=self._block_number,
            tx_hash=tx_hash,
        )
        self._receipts[tx_hash] = receipt
        return receipt
