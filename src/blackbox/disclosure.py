"""Selective disclosure — extension point for view-key holders.

A Disclosure re-derives a TransferRecord from a stored ciphertext given
an authorised view key. No cipher ships with this package; implementations
plug in here. ``check_disclosure`` ties any implementation back to the
public record: the disclosed record must commit to the on-chain value.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from blackbox.crypto.codec import commit
from blackbox.models.relay import AuditOutcome
from blackbox.models.transfer import Commitment, TransferRecord


@runtime_checkable
class Disclosure(Protocol):
    def disclose(self, ciphertext: bytes, view_key: bytes) -> TransferRecord:
        """Recover the record. Raises if the key is not authorised."""
        ...


def check_disclosure(
    disclosure: Disclosure,
    ciphertext: bytes,
    view_key: bytes,
    expected: Commitment,
) -> AuditOutcome:
    """Disclose a record and confirm it matches a published commitment."""
    record = disclosure.disclose(ciphertext, view_key)
    return AuditOutcome.MATCH if commit(record) == expected else AuditOutcome.MISMATCH
