"""PrivateTransferVault ledger — submits commitments to an EVM contract.

The relayer's transaction calls ``submitTransfer(bytes32)`` with the
commitment as the only argument, so the call data is the 4-byte selector
followed by the 32-byte token. The contract re-emits the token as a
``PrivateTransfer`` event, which is decoded from the mined receipt.

Transactions are signed locally by the relayer's credential and sent raw;
the node never sees the relayer's key.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

from web3 import HTTPProvider, Web3
from web3.exceptions import TransactionNotFound, Web3Exception
from web3.logs import DISCARD

from blackbox.crypto.credential import SigningCredential
from blackbox.errors import ConfigError, SubmissionRejected
from blackbox.ledger.abi import VAULT_ABI
from blackbox.ledger.base import EVENT_NAME, wait_for
from blackbox.models.transfer import (
    COMMITMENT_SIZE,
    SubmissionReceipt,
    TransactionHandle,
)

EXPLORERS: dict[int, str] = {
    1: "https://etherscan.io",
    11155111: "https://sepolia.etherscan.io",
}

# Errors a node or HTTP transport can raise while sending or polling.
_TRANSPORT_ERRORS = (Web3Exception, ValueError, OSError)


class VaultLedger:
    """Ledger collaborator backed by a deployed PrivateTransferVault.

    Usage:
        ledger = VaultLedger.connect(rpc_url, contract_address, credential)
        handle = ledger.submit(bytes(commitment))
        receipt = ledger.await_receipt(handle, timeout=30)
    """

    def __init__(
        self,
        w3: Web3,
        contract_address: str,
        credential: SigningCredential,
        chain_id: Optional[int] = None,
        gas: Optional[int] = None,
        gas_price_gwei: Optional[str] = None,
        poll_interval: float = 1.0,
        abi: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._w3 = w3
        self._credential = credential
        self._chain_id = chain_id
        self._gas = gas
        self._gas_price_gwei = gas_price_gwei
        self._poll_interval = poll_interval
        self._submit_lock = threading.Lock()
        self._contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address),
            abi=abi or VAULT_ABI,
        )

    @classmethod
    def connect(
        cls,
        rpc_url: str,
        contract_address: str,
        credential: SigningCredential,
        **kwargs: Any,
    ) -> VaultLedger:
        return cls(Web3(HTTPProvider(rpc_url)), contract_address, credential, **kwargs)

    @property
    def contract_address(self) -> str:
        return self._contract.address

    def submit(self, token: bytes) -> TransactionHandle:
        """Send submitTransfer(token) signed by the relayer credential."""
        if len(token) != COMMITMENT_SIZE:
            raise SubmissionRejected(
                f"Token must be {COMMITMENT_SIZE} bytes, got {len(token)}"
            )
        # The pending nonce is read and consumed under one lock.
        try:
            chain_id = self._chain_id if self._chain_id is not None else self._w3.eth.chain_id
            with self._submit_lock, self._credential.unlocked() as account:
                params: dict[str, Any] = {
                    "from": account.address,
                    "nonce": self._w3.eth.get_transaction_count(account.address, "pending"),
                    "chainId": chain_id,
                }
                if self._gas is not None:
                    params["gas"] = self._gas
                if self._gas_price_gwei is not None:
                    params["gasPrice"] = self._w3.to_wei(self._gas_price_gwei, "gwei")
                tx = self._contract.functions.submitTransfer(bytes(token)).build_transaction(params)
                signed = account.sign_transaction(tx)
                tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        except ConfigError as exc:
            raise SubmissionRejected(f"Relayer credential unavailable: {exc}") from exc
        except _TRANSPORT_ERRORS as exc:
            raise SubmissionRejected(f"Ledger call failed: {exc}") from exc
        return TransactionHandle(tx_hash=bytes(tx_hash))

    def await_receipt(
        self,
        handle: TransactionHandle,
        timeout: float,
        cancel: Optional[threading.Event] = None,
    ) -> SubmissionReceipt:
        """Poll for the mined receipt and decode the PrivateTransfer event."""
        raw = wait_for(
            lambda: self._fetch(handle),
            timeout=timeout,
            poll_interval=self._poll_interval,
            cancel=cancel,
            handle=handle,
        )
        if raw["status"] == 0:
            raise SubmissionRejected(
                f"Transaction {handle.hex()} reverted in block {raw['blockNumber']}",
                handle=handle,
                timeout=timeout,
            )
        event = getattr(self._contract.events, EVENT_NAME)()
        logs = event.process_receipt(raw, errors=DISCARD)
        emitted = bytes(logs[0]["args"]["commitment"]) if logs else None
        return SubmissionReceipt(
            emitted_commitment=emitted,
            block_reference=raw["blockNumber"],
            tx_hash=handle.tx_hash,
        )

    def explorer_url(self, handle: TransactionHandle) -> Optional[str]:
        """Block explorer link for the transaction, if the chain is known."""
        chain_id = self._chain_id
        if chain_id is None or chain_id not in EXPLORERS:
            return None
        return f"{EXPLORERS[chain_id]}/tx/{handle.hex()}"

    def _fetch(self, handle: TransactionHandle) -> Optional[Any]:
        try:
            return self._w3.eth.get_transaction_receipt(handle.tx_hash)
        except TransactionNotFound:
            return None
        except _TRANSPORT_ERRORS as exc:
            raise SubmissionRejected(
                f"Receipt query failed: {exc}", handle=handle,
            ) from exc
