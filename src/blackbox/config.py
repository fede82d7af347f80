"""Relayer configuration — network, contract address, deadlines.

Values come from the process environment, optionally seeded from a
``.env`` file. Private keys are never read here: configuration only
names the environment variables that hold them, and SigningCredential
resolves them at signing time.

Environment:
    BLACKBOX_NETWORK         localhost | sepolia (selects defaults)
    BLACKBOX_RPC_URL         RPC endpoint (fallback: SEPOLIA_RPC_URL)
    BLACKBOX_CHAIN_ID        chain id override
    CONTRACT_ADDRESS         deployed PrivateTransferVault address
                             (fallback: .sepolia-contract-address or
                             .contract-address in the project directory)
    BLACKBOX_TIMEOUT         receipt deadline in seconds (default: 30)
    BLACKBOX_POLL_INTERVAL   receipt polling interval (default: 1)
    BLACKBOX_GAS             fixed gas limit (default: estimated)
    BLACKBOX_GAS_PRICE_GWEI  legacy gas price (default: node fee market)
    BLACKBOX_AUDIT_LOG       JSONL audit log path (default: in-memory)
    BLACKBOX_ARTIFACT        contract artifact JSON to take the ABI from
    RELAYER_PRIVATE_KEY      relayer key (fallback: PRIVATE_KEY)
    SENDER_PRIVATE_KEY       sender key, used by the sign/demo commands
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import dotenv_values

from blackbox.crypto.credential import SigningCredential
from blackbox.errors import ConfigError


@dataclass(frozen=True)
class NetworkPreset:
    rpc_url: Optional[str]
    chain_id: int


NETWORKS: dict[str, NetworkPreset] = {
    "localhost": NetworkPreset(rpc_url="http://127.0.0.1:8545", chain_id=1337),
    "sepolia": NetworkPreset(rpc_url=None, chain_id=11155111),
}

DEFAULT_TIMEOUT = 30.0
DEFAULT_POLL_INTERVAL = 1.0
ADDRESS_FILES = (".sepolia-contract-address", ".contract-address")
RELAYER_KEY_VARS = ("RELAYER_PRIVATE_KEY", "PRIVATE_KEY")
SENDER_KEY_VARS = ("SENDER_PRIVATE_KEY",)


@dataclass(frozen=True)
class RelayerConfig:
    """Resolved relayer settings. Holds no secrets."""
    rpc_url: str
    contract_address: str
    chain_id: Optional[int] = None
    network: str = "localhost"
    timeout: float = DEFAULT_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    gas: Optional[int] = None
    gas_price_gwei: Optional[str] = None
    audit_log_path: Optional[Path] = None
    artifact_path: Optional[Path] = None
    relayer_key_vars: tuple[str, ...] = RELAYER_KEY_VARS
    sender_key_vars: tuple[str, ...] = SENDER_KEY_VARS

    @classmethod
    def from_env(
        cls,
        env_file: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        project_dir: Optional[Path] = None,
    ) -> RelayerConfig:
        """Build a config from the environment and an optional .env file.

        Real environment variables take precedence over the .env file.
        """
        env = load_environment(env_file, environ)
        project_dir = project_dir or Path.cwd()

        network = env.get("BLACKBOX_NETWORK", "localhost")
        if network not in NETWORKS:
            raise ConfigError(
                f"Unknown network {network!r}; expected one of {sorted(NETWORKS)}"
            )
        preset = NETWORKS[network]

        rpc_url = env.get("BLACKBOX_RPC_URL") or env.get("SEPOLIA_RPC_URL") or preset.rpc_url
        if not rpc_url:
            raise ConfigError(f"No RPC URL configured for network {network!r}")

        contract_address = env.get("CONTRACT_ADDRESS") or read_address_file(project_dir)
        if not contract_address:
            raise ConfigError(
                "Contract address not found. Set CONTRACT_ADDRESS or deploy the "
                f"contract and write its address to one of {list(ADDRESS_FILES)}"
            )

        audit_log = env.get("BLACKBOX_AUDIT_LOG")
        artifact = env.get("BLACKBOX_ARTIFACT")
        return cls(
            rpc_url=rpc_url,
            contract_address=contract_address,
            chain_id=_int(env, "BLACKBOX_CHAIN_ID", preset.chain_id),
            network=network,
            timeout=_float(env, "BLACKBOX_TIMEOUT", DEFAULT_TIMEOUT),
            poll_interval=_float(env, "BLACKBOX_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            gas=_int(env, "BLACKBOX_GAS", None),
            gas_price_gwei=env.get("BLACKBOX_GAS_PRICE_GWEI") or None,
            audit_log_path=Path(audit_log) if audit_log else None,
            artifact_path=Path(artifact) if artifact else None,
        )

    def relayer_credential(self, environ: Optional[Mapping[str, str]] = None) -> SigningCredential:
        return SigningCredential.from_env(*self.relayer_key_vars, environ=environ)

    def sender_credential(self, environ: Optional[Mapping[str, str]] = None) -> SigningCredential:
        return SigningCredential.from_env(*self.sender_key_vars, environ=environ)


def load_environment(
    env_file: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """Merge a .env file under the given (or process) environment."""
    merged: dict[str, str] = {}
    if env_file is not None and env_file.exists():
        merged.update({k: v for k, v in dotenv_values(env_file).items() if v is not None})
    merged.update(environ if environ is not None else os.environ)
    return merged


def read_address_file(project_dir: Path) -> Optional[str]:
    """Read a deployed contract address written by the deployment step."""
    for name in ADDRESS_FILES:
        path = project_dir / name
        if path.exists():
            address = path.read_text(encoding="utf-8").strip()
            if address:
                return address
    return None


def _int(env: Mapping[str, str], name: str, default: Optional[int]) -> Optional[int]:
    raw = env.get(name)
    if not raw:
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {value}")
    return value
