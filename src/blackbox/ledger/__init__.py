"""Ledger collaborators — the boundary where commitments become public."""

from blackbox.ledger.base import Ledger, wait_for
from blackbox.ledger.memory import InMemoryLedger, LedgerEvent

__all__ = ["InMemoryLedger", "Ledger", "LedgerEvent", "wait_for"]
