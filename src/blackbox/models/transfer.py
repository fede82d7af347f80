"""Transfer record and commitment value types.

A TransferRecord never leaves the off-chain parties. The only value that
reaches the ledger is its Commitment: keccak-256 over the fixed 128-byte
ABI encoding of (sender, recipient, amount, timestamp).

All types here are immutable once constructed.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional, Union

COMMITMENT_SIZE = 32
ADDRESS_SIZE = 20
SIGNATURE_SIZE = 65

# Addresses may be given as raw bytes or 0x-prefixed hex.
AddressLike = Union[bytes, str]


@dataclass(frozen=True)
class TransferRecord:
    """The private transfer intent.

    Field validation is deferred to encoding so that every malformed
    record fails in one place (the codec) with a typed error.
    """
    sender: AddressLike
    recipient: AddressLike
    amount: int
    timestamp: int

    @staticmethod
    def now(sender: AddressLike, recipient: AddressLike, amount: int) -> TransferRecord:
        """Create a record stamped with the current UNIX time (seconds)."""
        return TransferRecord(
            sender=sender,
            recipient=recipient,
            amount=amount,
            timestamp=int(time.time()),
        )


@dataclass(frozen=True)
class Commitment:
    """A 32-byte one-way digest standing in for a TransferRecord."""
    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, bytes) or len(self.value) != COMMITMENT_SIZE:
            raise ValueError(
                f"Commitment must be exactly {COMMITMENT_SIZE} bytes"
            )

    def __bytes__(self) -> bytes:
        return self.value

    def __str__(self) -> str:
        return self.hex()

    def hex(self) -> str:
        return "0x" + self.value.hex()

    @staticmethod
    def from_hex(text: str) -> Commitment:
        raw = text[2:] if text.lower().startswith("0x") else text
        return Commitment(bytes.fromhex(raw))


@dataclass(frozen=True)
class SignedCommitment:
    """A commitment endorsed by the sender's key (EIP-191, r || s || v)."""
    commitment: Commitment
    signature: bytes


@dataclass(frozen=True)
class TransactionHandle:
    """Opaque reference to a submitted ledger transaction."""
    tx_hash: bytes

    def hex(self) -> str:
        return "0x" + self.tx_hash.hex()


@dataclass(frozen=True)
class SubmissionReceipt:
    """What the ledger reports back for a mined submission.

    emitted_commitment is None when the response carried no
    PrivateTransfer event.
    """
    emitted_commitment: Optional[bytes]
    block_reference: int
    tx_hash: bytes = b""
