"""Ledger access: the client protocol and its Web3 implementation."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from web3 import HTTPProvider, Web3
from web3.exceptions import ContractLogicError, TimeExhausted

from .config import OrchestratorConfig
from .errors import BusinessRuleRejection, ConfigurationMissing, LedgerUnavailableError, TransactionFailedError
from .models import EventRecord, Receipt

logger = logging.getLogger(__name__)

_REVERT_PREFIXES = ("execution reverted: ", "VM Exception while processing transaction: reverted with reason string ")


class LedgerClient(Protocol):
    """Subset of ledger operations the orchestrator depends on."""

    @property
    def address(self) -> str:  # pragma: no cover - protocol
        """Address of the election contract."""

    async def accounts(self) -> List[str]:  # pragma: no cover - protocol
        """Identities able to sign transactions through this client."""

    async def block_number(self) -> int:  # pragma: no cover - protocol
        """Return the current chain head."""

    async def transact(self, function_name: str, *args: Any, sender: str) -> Receipt:  # pragma: no cover - protocol
        """Submit a contract transaction and wait for its receipt."""

    async def call(self, function_name: str, *args: Any) -> Any:  # pragma: no cover - protocol
        """Invoke a read-only contract function."""

    async def get_logs(self, from_block: int, to_block: int) -> List[Any]:  # pragma: no cover - protocol
        """Return raw contract logs for the inclusive block range."""

    def decode_log(self, log: Any) -> Optional[EventRecord]:  # pragma: no cover - protocol
        """Decode a raw log, returning ``None`` for unknown events."""


def ensure_success(receipt: Receipt, action: str, message: Optional[str] = None) -> Receipt:
    """Return ``receipt`` or raise :class:`TransactionFailedError` when it failed."""

    if not receipt.succeeded:
        logger.error("Transaction failed", extra={"action": action, "block": receipt.block_number})
        raise TransactionFailedError(message or f"{action} tx failed.", action=action, receipt=receipt)
    return receipt


def revert_reason(exc: BaseException) -> str:
    """Extract the contract's reason string from a revert error."""

    message = getattr(exc, "message", None) or str(exc)
    if isinstance(message, (tuple, list)) and message:
        message = message[0]
    text = str(message).strip().strip("'\"")
    for prefix in _REVERT_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
    return text.strip().strip("'\"")


def load_abi(path: Path | str) -> List[Dict[str, Any]]:
    """Load an ABI from a plain ABI list or a compiled artifact containing ``abi``."""

    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if isinstance(payload, dict):
        payload = payload.get("abi", [])
    if not isinstance(payload, list):
        raise ValueError(f"No ABI found in {path}")
    return payload


def _abi_type(entry: Dict[str, Any]) -> str:
    kind = str(entry["type"])
    if kind.startswith("tuple"):
        inner = ",".join(_abi_type(component) for component in entry.get("components", []))
        return f"({inner}){kind[len('tuple'):]}"
    return kind


def event_topics(abi: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    """Map each event's topic hash to its name."""

    topics: Dict[str, str] = {}
    for entry in abi:
        if entry.get("type") != "event" or entry.get("anonymous"):
            continue
        signature = f"{entry['name']}({','.join(_abi_type(item) for item in entry.get('inputs', []))})"
        topics[Web3.to_hex(Web3.keccak(text=signature)).lower()] = str(entry["name"])
    return topics


def _to_hex(value: Any) -> str:
    if isinstance(value, str):
        return value
    return Web3.to_hex(value)


def get_web3(config: OrchestratorConfig) -> Web3:
    logger.debug("Initialising Web3 client", extra={"rpc_url": config.rpc_url, "chain_id": config.chain_id})
    web3 = Web3(HTTPProvider(config.rpc_url, request_kwargs={"timeout": 30}))
    if not web3.is_connected():
        raise LedgerUnavailableError(f"Failed to connect to RPC endpoint: {config.rpc_url}", rpc_url=config.rpc_url)
    if config.chain_id is not None:
        chain_id = web3.eth.chain_id
        if chain_id != config.chain_id:
            raise LedgerUnavailableError(
                f"Chain ID mismatch: expected {config.chain_id} got {chain_id}", rpc_url=config.rpc_url
            )
    return web3


class Web3LedgerClient:
    """:class:`LedgerClient` backed by a JSON-RPC node through ``web3``.

    Blocking ``web3`` calls are pushed onto worker threads so the event loop
    stays free while a receipt or log query is in flight.
    """

    def __init__(
        self,
        web3: Web3,
        contract_address: str,
        abi: Sequence[Dict[str, Any]],
        *,
        receipt_timeout: float = 120.0,
    ) -> None:
        self.web3 = web3
        self.contract = web3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=list(abi))
        self._receipt_timeout = receipt_timeout
        self._topics = event_topics(abi)

    @classmethod
    def connect(cls, config: OrchestratorConfig) -> "Web3LedgerClient":
        address = config.require_contract_address()
        return cls(get_web3(config), address, load_abi(config.abi_path), receipt_timeout=config.receipt_timeout)

    @property
    def address(self) -> str:
        return str(self.contract.address)

    async def accounts(self) -> List[str]:
        return await asyncio.to_thread(lambda: [str(account) for account in self.web3.eth.accounts])

    async def block_number(self) -> int:
        return int(await asyncio.to_thread(lambda: self.web3.eth.block_number))

    async def call(self, function_name: str, *args: Any) -> Any:
        function = getattr(self.contract.functions, function_name)(*args)
        return await asyncio.to_thread(function.call)

    async def transact(self, function_name: str, *args: Any, sender: str) -> Receipt:
        function = getattr(self.contract.functions, function_name)(*args)
        try:
            tx_hash = await asyncio.to_thread(function.transact, {"from": Web3.to_checksum_address(sender)})
        except ContractLogicError as exc:
            reason = revert_reason(exc)
            logger.warning("Contract rejected %s: %s", function_name, reason)
            raise BusinessRuleRejection(reason, action=function_name) from exc
        logger.info("Submitted transaction", extra={"action": function_name, "voter": sender, "tx_hash": _to_hex(tx_hash)})
        try:
            raw = await asyncio.to_thread(
                self.web3.eth.wait_for_transaction_receipt, tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as exc:
            raise TransactionFailedError(
                f"No receipt for {function_name} within {self._receipt_timeout:.0f}s",
                action=function_name,
            ) from exc
        return Receipt(status=int(raw["status"]), block_number=int(raw["blockNumber"]), tx_hash=_to_hex(tx_hash))

    async def get_logs(self, from_block: int, to_block: int) -> List[Any]:
        params = {"address": self.contract.address, "fromBlock": from_block, "toBlock": to_block}
        return list(await asyncio.to_thread(self.web3.eth.get_logs, params))

    def decode_log(self, log: Any) -> Optional[EventRecord]:
        topics = log.get("topics") or []
        if not topics:
            return None
        name = self._topics.get(_to_hex(topics[0]).lower())
        if name is None:
            return None
        decoded = getattr(self.contract.events, name)().process_log(log)
        return EventRecord(
            name=str(decoded["event"]),
            fields=dict(decoded["args"]),
            block_number=int(decoded["blockNumber"]),
            log_index=int(decoded["logIndex"]),
            tx_hash=_to_hex(decoded["transactionHash"]),
        )


async def deploy_contract(config: OrchestratorConfig, *, sender: Optional[str] = None) -> str:
    """Deploy the election contract from its compiled artifact and return its address."""

    if config.artifact_path is None:
        raise ConfigurationMissing("artifact_path is required to deploy the contract", key="artifact_path")
    with Path(config.artifact_path).open("r", encoding="utf-8") as handle:
        artifact = json.load(handle)
    web3 = get_web3(config)
    deployer = sender or config.sender or await asyncio.to_thread(lambda: web3.eth.accounts[0])
    factory = web3.eth.contract(abi=artifact["abi"], bytecode=artifact["bytecode"])
    logger.info("Deploying election contract", extra={"deployer": deployer})
    tx_hash = await asyncio.to_thread(factory.constructor().transact, {"from": Web3.to_checksum_address(deployer)})
    raw = await asyncio.to_thread(web3.eth.wait_for_transaction_receipt, tx_hash, timeout=config.receipt_timeout)
    receipt = Receipt(status=int(raw["status"]), block_number=int(raw["blockNumber"]), tx_hash=_to_hex(tx_hash))
    ensure_success(receipt, "deploy", "Contract deployment tx failed.")
    return Web3.to_checksum_address(raw["contractAddress"])


__all__ = [
    "LedgerClient",
    "Web3LedgerClient",
    "deploy_contract",
    "ensure_success",
    "event_topics",
    "get_web3",
    "load_abi",
    "revert_reason",
]
