"""Relay service — facade over the relayer pipeline for callers and the CLI.

Wires configuration, the ledger collaborator, and the audit log into a
RelayerPipeline, and reports every relay as a typed ServiceResult.
Failures are returned, not raised; the result's ``data`` carries enough
context (reason, retryability, handle, deadline) for the caller to decide
on a retry.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from blackbox.config import RelayerConfig
from blackbox.crypto.authenticator import SignatureLike
from blackbox.engine.relayer import RelayerPipeline
from blackbox.ledger.abi import load_artifact_abi
from blackbox.ledger.vault import VaultLedger
from blackbox.models.relay import RelayOutcome
from blackbox.models.transfer import TransferRecord
from blackbox.persistence.event_log import EventLog


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class RelayService:
    """Relayer facade.

    Usage:
        config = RelayerConfig.from_env(Path(".env"))
        service = RelayService.from_config(config)
        result = service.relay(record, signature)
        if not result.success and result.data["retryable"]:
            ...  # resubmission is idempotent
    """

    def __init__(
        self,
        pipeline: RelayerPipeline,
        default_timeout: float = 30.0,
    ) -> None:
        self._pipeline = pipeline
        self._default_timeout = default_timeout
        self._lock = threading.Lock()
        self._outcomes: Counter[str] = Counter()

    @classmethod
    def from_config(
        cls,
        config: RelayerConfig,
        environ: Optional[Mapping[str, str]] = None,
    ) -> RelayService:
        """Build a service that relays to the configured vault contract.

        The relayer key is resolved here, so a missing or malformed key
        raises ConfigError before any relay starts.
        """
        credential = config.relayer_credential(environ)
        credential.address
        abi = load_artifact_abi(config.artifact_path) if config.artifact_path else None
        ledger = VaultLedger.connect(
            config.rpc_url,
            config.contract_address,
            credential,
            chain_id=config.chain_id,
            gas=config.gas,
            gas_price_gwei=config.gas_price_gwei,
            poll_interval=config.poll_interval,
            abi=abi,
        )
        event_log = EventLog(storage_path=config.audit_log_path)
        pipeline = RelayerPipeline(ledger, event_log=event_log)
        return cls(pipeline, default_timeout=config.timeout)

    @property
    def pipeline(self) -> RelayerPipeline:
        return self._pipeline

    def relay(
        self,
        record: TransferRecord,
        signature: SignatureLike,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ServiceResult:
        """Relay one signed transfer and report the terminal outcome."""
        outcome = self._pipeline.relay(
            record,
            signature,
            timeout=timeout if timeout is not None else self._default_timeout,
            cancel=cancel,
        )
        with self._lock:
            self._outcomes[outcome.reason.value if outcome.reason else outcome.state.value] += 1

        data = outcome_to_dict(outcome)
        if outcome.confirmed:
            return ServiceResult(success=True, data=data)
        return ServiceResult(
            success=False,
            errors=[f"{outcome.reason.value}: {outcome.detail}"],
            data=data,
        )

    def status(self) -> dict[str, Any]:
        """Relay counts by outcome, plus audit log size."""
        with self._lock:
            outcomes = dict(self._outcomes)
        event_log = self._pipeline.event_log
        return {
            "outcomes": outcomes,
            "relays": sum(outcomes.values()),
            "audit_events": event_log.count if event_log is not None else 0,
        }


def outcome_to_dict(outcome: RelayOutcome) -> dict[str, Any]:
    """JSON-friendly view of a RelayOutcome. Contains no record fields."""
    receipt = outcome.receipt
    emitted = receipt.emitted_commitment if receipt is not None else None
    return {
        "submission_id": outcome.submission_id,
        "state": outcome.state.value,
        "reason": outcome.reason.value if outcome.reason else None,
        "category": outcome.reason.category if outcome.reason else None,
        "retryable": outcome.reason.retryable if outcome.reason else False,
        "commitment": outcome.commitment.hex() if outcome.commitment else None,
        "tx_hash": outcome.handle.hex() if outcome.handle else None,
        "block_reference": receipt.block_reference if receipt is not None else None,
        "emitted_commitment": "0x" + emitted.hex() if emitted is not None else None,
        "audit": outcome.audit.value if outcome.audit else None,
        "timeout": outcome.timeout,
        "detail": outcome.detail,
        "history": [s.value for s in outcome.history],
    }
