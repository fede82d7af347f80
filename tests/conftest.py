"""Shared fixtures: Hardhat development keys, records, a fake clock."""

import pytest

from blackbox.crypto.credential import SigningCredential
from blackbox.models.transfer import TransferRecord

# Hardhat's well-known development accounts #0 and #1.
SENDER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SENDER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

VECTOR_SENDER = bytes.fromhex("aa" * 19 + "01")
VECTOR_RECIPIENT = bytes.fromhex("bb" * 19 + "02")


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def sender_credential() -> SigningCredential:
    return SigningCredential.from_key(SENDER_KEY, label="sender")


@pytest.fixture
def other_credential() -> SigningCredential:
    return SigningCredential.from_key(OTHER_KEY, label="other")


@pytest.fixture
def vector_record() -> TransferRecord:
    """Fixed end-to-end vector: 0xAAAA..01 → 0xBBBB..02, 1000 at 1700000000."""
    return TransferRecord(
        sender=VECTOR_SENDER,
        recipient=VECTOR_RECIPIENT,
        amount=1000,
        timestamp=1700000000,
    )


@pytest.fixture
def record() -> TransferRecord:
    """Same transfer as the vector, but sent from a key we hold."""
    return TransferRecord(
        sender=SENDER_ADDRESS,
        recipient=VECTOR_RECIPIENT,
        amount=1000,
        timestamp=1700000000,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
