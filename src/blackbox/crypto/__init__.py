"""Cryptographic primitives — commitment codec, signing, credentials."""

from blackbox.crypto.codec import commit, encode
from blackbox.crypto.authenticator import authenticate, sign, sign_commitment, verify
from blackbox.crypto.credential import SigningCredential

__all__ = [
    "SigningCredential",
    "authenticate",
    "commit",
    "encode",
    "sign",
    "sign_commitment",
    "verify",
]
