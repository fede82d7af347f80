"""Scoped signing credentials.

A SigningCredential never holds an unlocked account between operations.
The private key is resolved from its source only inside ``unlocked()``
and the derived account is dropped as soon as the block exits.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Callable, Iterator, Mapping, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys.exceptions import ValidationError as KeyValidationError

from blackbox.errors import ConfigError


class SigningCredential:
    """Handle to a private key that is acquired per signing operation.

    Usage:
        credential = SigningCredential.from_env("SENDER_PRIVATE_KEY")
        with credential.unlocked() as account:
            signed = account.sign_message(message)
    """

    def __init__(self, loader: Callable[[], Optional[str]], label: str = "credential") -> None:
        self._loader = loader
        self._label = label

    @classmethod
    def from_key(cls, private_key: str, label: str = "inline") -> SigningCredential:
        """Wrap a key that is already in memory (tests, demos)."""
        return cls(lambda: private_key, label=label)

    @classmethod
    def from_env(
        cls,
        *names: str,
        environ: Optional[Mapping[str, str]] = None,
    ) -> SigningCredential:
        """Resolve the key from the first set environment variable in names.

        The variable is read at unlock time, not at construction.
        """
        if not names:
            raise ValueError("At least one environment variable name is required")
        env = environ if environ is not None else os.environ

        def _load() -> Optional[str]:
            for name in names:
                value = env.get(name)
                if value:
                    return value
            return None

        return cls(_load, label="env:" + "|".join(names))

    @contextmanager
    def unlocked(self) -> Iterator[LocalAccount]:
        """Yield a LocalAccount for the duration of one operation."""
        key = self._loader()
        if not key:
            raise ConfigError(f"No private key available for {self._label}")
        try:
            account = Account.from_key(key)
        except (ValueError, TypeError, KeyValidationError):
            # Suppress the original exception; its message may echo the key.
            raise ConfigError(f"{self._label} does not hold a valid private key") from None
        finally:
            del key
        try:
            yield account
        finally:
            del account

    @property
    def address(self) -> str:
        """Checksum address of the key. Unlocks briefly."""
        with self.unlocked() as account:
            return account.address

    def __repr__(self) -> str:
        return f"SigningCredential({self._label})"
