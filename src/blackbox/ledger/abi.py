"""ABI of the PrivateTransferVault contract.

    function submitTransfer(bytes32 commitment) external;
    event PrivateTransfer(bytes32 commitment);

The event carries the commitment and nothing else.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

VAULT_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "submitTransfer",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "commitment", "type": "bytes32", "internalType": "bytes32"},
        ],
        "outputs": [],
    },
    {
        "type": "event",
        "name": "PrivateTransfer",
        "anonymous": False,
        "inputs": [
            {
                "name": "commitment",
                "type": "bytes32",
                "indexed": False,
                "internalType": "bytes32",
            },
        ],
    },
]


def load_artifact_abi(artifact_path: Path) -> list[dict[str, Any]]:
    """Read the ABI from a Hardhat/Foundry artifact JSON file.

    Accepts either a full artifact (``{"abi": [...], ...}``) or a bare
    ABI list.
    """
    data = json.loads(artifact_path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ValueError(f"No ABI found in {artifact_path}")
    return data
