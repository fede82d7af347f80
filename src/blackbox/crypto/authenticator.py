"""Authenticator — signs commitments and recovers their signers.

The signature covers the 32 commitment bytes, not the transfer record.
A signer endorses "this exact commitment", and a verifier can check that
endorsement without ever seeing the record behind it.

Signatures are EIP-191 personal messages (``\\x19Ethereum Signed Message:\\n32``
prefix), 65 bytes ``r || s || v``, interoperable with ``signMessage`` in
ethers.js and ``eth_sign`` wallets.
"""

from __future__ import annotations

from typing import Union

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature, ValidationError as KeyValidationError

from blackbox.crypto.codec import address_bytes, commit
from blackbox.crypto.credential import SigningCredential
from blackbox.errors import InvalidSignature
from blackbox.models.transfer import (
    SIGNATURE_SIZE,
    Commitment,
    SignedCommitment,
    TransferRecord,
)

SignatureLike = Union[bytes, str]


def sign(credential: SigningCredential, commitment: Commitment) -> bytes:
    """Sign the raw commitment bytes with the credential's key."""
    message = encode_defunct(primitive=bytes(commitment))
    with credential.unlocked() as account:
        signed = account.sign_message(message)
    return bytes(signed.signature)


def verify(commitment: Commitment, signature: SignatureLike) -> str:
    """Recover the checksum address that signed the commitment.

    Raises InvalidSignature if the signature is malformed or recovery fails.
    """
    raw = signature_bytes(signature)
    message = encode_defunct(primitive=bytes(commitment))
    try:
        return Account.recover_message(message, signature=raw)
    except (BadSignature, KeyValidationError, ValueError, TypeError) as exc:
        raise InvalidSignature(f"Signature recovery failed: {exc}") from exc


def authenticate(record: TransferRecord, signature: SignatureLike) -> bool:
    """True iff the signature over commit(record) recovers to record.sender.

    Encoding errors and InvalidSignature propagate; a well-formed
    signature from any other key returns False.
    """
    commitment = commit(record)
    recovered = verify(commitment, signature)
    return address_bytes(recovered, "signer") == address_bytes(record.sender, "sender")


def sign_commitment(credential: SigningCredential, record: TransferRecord) -> SignedCommitment:
    """Sender-side helper: derive the commitment and sign it."""
    commitment = commit(record)
    return SignedCommitment(commitment=commitment, signature=sign(credential, commitment))


def signature_bytes(signature: SignatureLike) -> bytes:
    """Normalise a signature to 65 raw bytes."""
    if isinstance(signature, str):
        text = signature[2:] if signature.lower().startswith("0x") else signature
        try:
            signature = bytes.fromhex(text)
        except ValueError:
            raise InvalidSignature("Signature is not valid hex") from None
    if not isinstance(signature, (bytes, bytearray)):
        raise InvalidSignature(f"Signature must be bytes or hex, got {type(signature).__name__}")
    if len(signature) != SIGNATURE_SIZE:
        raise InvalidSignature(
            f"Signature must be {SIGNATURE_SIZE} bytes, got {len(signature)}"
        )
    return bytes(signature)
