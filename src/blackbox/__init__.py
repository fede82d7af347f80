"""Blackbox — commitment-based private transfers through a relayer.

Only a 32-byte keccak commitment of each transfer is ever published on the
ledger. Sender, recipient and amount stay off-chain.
"""

__version__ = "0.1.0"
