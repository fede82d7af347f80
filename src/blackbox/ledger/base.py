"""Ledger collaborator boundary.

The relayer needs exactly two things from a ledger:

    submit(token)                      -> TransactionHandle
    await_receipt(handle, timeout)     -> SubmissionReceipt

``token`` is the 32-byte commitment and nothing else. Whatever is passed
to ``submit`` is the only thing that can ever be observed publicly.
Nonce ordering and other submission-channel discipline belong to the
implementation, not to the relayer.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, Protocol, TypeVar, runtime_checkable

from blackbox.errors import SubmissionCancelled, SubmissionTimeout
from blackbox.models.transfer import SubmissionReceipt, TransactionHandle

T = TypeVar("T")

EVENT_NAME = "PrivateTransfer"


@runtime_checkable
class Ledger(Protocol):
    """Minimum contract the relayer requires from a ledger."""

    def submit(self, token: bytes) -> TransactionHandle:
        """Record a 32-byte token. Raises SubmissionRejected on failure."""
        ...

    def await_receipt(
        self,
        handle: TransactionHandle,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> SubmissionReceipt:
        """Block until the submission is mined.

        Raises SubmissionTimeout at the deadline, SubmissionCancelled if
        ``cancel`` is set first, SubmissionRejected on transport errors.
        """
        ...


def wait_for(
    fetch: Callable[[], Optional[T]],
    timeout: float,
    poll_interval: float,
    cancel: Optional[threading.Event] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], None]] = None,
    handle: Optional[TransactionHandle] = None,
) -> T:
    """Poll ``fetch`` until it returns a value or the deadline passes.

    Sleeps are clipped to the remaining time, so the timeout fires when
    the clock reaches the deadline: not before, and no later than one
    fetch after. If no ``sleep`` is given, waiting is done on the
    cancel event (when present) so cancellation is observed promptly.
    """
    if timeout <= 0:
        raise ValueError(f"timeout must be positive, got {timeout}")
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be positive, got {poll_interval}")

    deadline = clock() + timeout
    while True:
        if cancel is not None and cancel.is_set():
            raise SubmissionCancelled(
                "Wait abandoned by caller", handle=handle, timeout=timeout,
            )
        result = fetch()
        if result is not None:
            return result
        remaining = deadline - clock()
        if remaining <= 0:
            raise SubmissionTimeout(
                f"No receipt within {timeout}s", handle=handle, timeout=timeout,
            )
        delay = min(poll_interval, remaining)
        if sleep is not None:
            sleep(delay)
        elif cancel is not None:
            cancel.wait(delay)
        else:
            time.sleep(delay)
