"""Configuration for the election orchestrator.

Runtime settings come from an optional YAML file with ``MJ_*`` environment
overrides.  The deployed contract address is persisted separately in a small
deployment record written by ``deploy`` and read by every other command.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field
from web3 import Web3

from .errors import ConfigurationMissing

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_ABI_PATH = _PACKAGE_DIR / "abi" / "MJVS_POC.json"
DEFAULT_DEPLOYMENT_FILE = Path("MJVS.yaml")
DEFAULT_CHART_PATH = Path("images") / "majority_judgment_chart.png"

_ENV_FIELDS: Dict[str, str] = {
    "MJ_RPC_URL": "rpc_url",
    "MJ_CHAIN_ID": "chain_id",
    "MJ_CONTRACT_ADDRESS": "contract_address",
    "MJ_SENDER": "sender",
    "MJ_ABI_PATH": "abi_path",
    "MJ_ARTIFACT_PATH": "artifact_path",
    "MJ_RELAYER_URL": "relayer_url",
    "MJ_POLL_INTERVAL": "poll_interval",
    "MJ_CREATION_TIMEOUT": "creation_timeout",
    "MJ_DECRYPTION_TIMEOUT": "decryption_timeout",
    "MJ_ORACLE_TIMEOUT": "oracle_timeout",
    "MJ_RECEIPT_TIMEOUT": "receipt_timeout",
    "MJ_DEPLOYMENT_FILE": "deployment_file",
    "MJ_CHART_PATH": "chart_path",
    "MJ_RANDOM_SEED": "random_seed",
}


class OrchestratorConfig(BaseModel):
    """Explicit configuration handed to every orchestrator component."""

    rpc_url: str = "http://127.0.0.1:8545"
    chain_id: Optional[int] = None
    contract_address: Optional[str] = None
    sender: Optional[str] = Field(default=None, description="Signing identity; defaults to the first node account.")
    abi_path: Path = DEFAULT_ABI_PATH
    artifact_path: Optional[Path] = Field(default=None, description="Compiled contract artifact used by deploy.")
    relayer_url: str = "http://127.0.0.1:3000"
    poll_interval: float = Field(default=1.0, gt=0)
    creation_timeout: float = Field(default=60.0, gt=0)
    decryption_timeout: float = Field(default=180.0, gt=0)
    oracle_timeout: float = Field(default=180.0, gt=0)
    receipt_timeout: float = Field(default=120.0, gt=0)
    deployment_file: Path = DEFAULT_DEPLOYMENT_FILE
    chart_path: Path = DEFAULT_CHART_PATH
    random_seed: Optional[int] = None

    @classmethod
    def load(cls, path: Path | str | None = None, *, environ: Optional[Dict[str, str]] = None) -> "OrchestratorConfig":
        """Build a configuration from ``path`` (if given) and the environment."""

        data: Dict[str, Any] = {}
        if path is not None:
            file_path = Path(path)
            loaded = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
            if not isinstance(loaded, dict):
                raise ValueError(f"Expected a mapping in {file_path}, found {type(loaded).__name__}")
            data.update(loaded)
        data.update(_env_overrides(os.environ if environ is None else environ))
        return cls.model_validate(data)

    def with_contract_address(self, address: str) -> "OrchestratorConfig":
        return self.model_copy(update={"contract_address": Web3.to_checksum_address(address)})

    def resolve_contract_address(self) -> "OrchestratorConfig":
        """Return a copy whose contract address is taken from the deployment record if unset."""

        if self.contract_address:
            return self
        return self.with_contract_address(load_contract_address(self.deployment_file))

    def require_contract_address(self) -> str:
        if not self.contract_address:
            raise ConfigurationMissing(
                f"No contract address on record. Run 'deploy' first to create {self.deployment_file}."
            )
        return self.contract_address


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for key, field_name in _ENV_FIELDS.items():
        raw = environ.get(key)
        if raw is None or raw.strip() == "":
            continue
        overrides[field_name] = raw.strip()
    return overrides


def save_contract_address(path: Path | str, address: str) -> Path:
    """Persist the deployed contract address as the single key of ``path``."""

    file_path = Path(path)
    if file_path.parent and not file_path.parent.exists():
        file_path.parent.mkdir(parents=True, exist_ok=True)
    checksum = Web3.to_checksum_address(address)
    file_path.write_text(yaml.safe_dump({"contract_address": checksum}), encoding="utf-8")
    logger.info("Recorded contract address", extra={"path": str(file_path), "address": checksum})
    return file_path


def load_contract_address(path: Path | str) -> str:
    """Return the deployed contract address or raise :class:`ConfigurationMissing`."""

    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationMissing(
            f"Could not find {file_path}, please run 'deploy' to deploy the contract and create it."
        )
    payload = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    address = payload.get("contract_address") if isinstance(payload, dict) else None
    if not address:
        raise ConfigurationMissing(f"contract_address is not defined in {file_path}")
    return Web3.to_checksum_address(str(address))


__all__ = [
    "DEFAULT_ABI_PATH",
    "DEFAULT_CHART_PATH",
    "DEFAULT_DEPLOYMENT_FILE",
    "OrchestratorConfig",
    "load_contract_address",
    "save_contract_address",
]
