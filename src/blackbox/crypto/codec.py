"""Commitment codec — fixed-width ABI encoding and keccak-256 commitment.

Encoding layout (128 bytes, Solidity ``abi.encode`` compatible):

    word 0   sender     12 zero bytes || 20 address bytes
    word 1   recipient  12 zero bytes || 20 address bytes
    word 2   amount     uint256, big-endian, left-padded with zeros
    word 3   timestamp  uint256, big-endian, left-padded with zeros

No field is variable-length, so the mapping is injective over valid
records. Any implementation using ``abi.encode(address, address, uint256,
uint256)`` followed by keccak-256 agrees byte-for-byte.
"""

from __future__ import annotations

from eth_abi import encode as abi_encode
from eth_utils import decode_hex, is_hex_address, keccak

from blackbox.errors import AmountOverflow, InvalidAddress, InvalidTimestamp
from blackbox.models.transfer import (
    ADDRESS_SIZE,
    AddressLike,
    Commitment,
    TransferRecord,
)

ABI_TYPES = ("address", "address", "uint256", "uint256")
ENCODED_SIZE = 32 * len(ABI_TYPES)
UINT256_MAX = 2**256 - 1


def encode(record: TransferRecord) -> bytes:
    """Encode a transfer record into its canonical 128-byte form.

    Raises InvalidAddress, AmountOverflow or InvalidTimestamp for
    malformed fields. Pure; no side effects.
    """
    sender = address_bytes(record.sender, "sender")
    recipient = address_bytes(record.recipient, "recipient")
    amount = _uint256(record.amount, "amount", AmountOverflow)
    timestamp = _uint256(record.timestamp, "timestamp", InvalidTimestamp)
    return abi_encode(list(ABI_TYPES), [sender, recipient, amount, timestamp])


def commit(record: TransferRecord) -> Commitment:
    """Derive the commitment: keccak-256 of encode(record)."""
    return Commitment(keccak(encode(record)))


def address_bytes(value: AddressLike, field_name: str = "address") -> bytes:
    """Normalise an address to its 20 raw bytes.

    Accepts 20 raw bytes or a 40-digit hex string (``0x`` prefix optional,
    any case). Checksums are not enforced.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != ADDRESS_SIZE:
            raise InvalidAddress(
                f"{field_name} must be {ADDRESS_SIZE} bytes, got {len(value)}"
            )
        return bytes(value)
    if isinstance(value, str) and is_hex_address(value):
        return decode_hex(value)
    raise InvalidAddress(f"{field_name} is not a 20-byte address")


def _uint256(value: int, field_name: str, error: type[Exception]) -> int:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise error(f"{field_name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise error(f"{field_name} is outside the uint256 range")
    return value
