"""Encryption SDK boundary: turn cleartext grades into opaque ciphertext handles."""

from __future__ import annotations

import logging
from typing import Any, Protocol, Sequence

from web3 import Web3

from .models import EncryptedInput
from .relayer import RelayerError, RelayerRPC

logger = logging.getLogger(__name__)


class EncryptionSDK(Protocol):
    """Produces ciphertext handles and a validity proof bound to a contract and user."""

    async def encrypt(
        self, contract_address: str, user_address: str, values: Sequence[int]
    ) -> EncryptedInput:  # pragma: no cover - protocol
        """Encrypt ``values`` as 8-bit inputs for ``user_address`` on ``contract_address``."""


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes(Web3.to_bytes(hexstr=str(value)))


class RelayerEncryptionClient:
    """:class:`EncryptionSDK` that delegates input encryption to the relayer."""

    def __init__(self, rpc: RelayerRPC, *, bits: int = 8) -> None:
        self._rpc = rpc
        self._bits = bits

    async def encrypt(self, contract_address: str, user_address: str, values: Sequence[int]) -> EncryptedInput:
        request = {
            "contractAddress": Web3.to_checksum_address(contract_address),
            "userAddress": Web3.to_checksum_address(user_address),
            "values": [int(value) for value in values],
            "bits": self._bits,
        }
        logger.debug("Encrypting %d values", len(values), extra={"voter": user_address, "action": "encrypt"})
        result = await self._rpc.request("relayer_encryptInput", [request])
        if not isinstance(result, dict) or "handles" not in result or "inputProof" not in result:
            raise RelayerError("Relayer returned an invalid encrypted input")
        handles = [_to_bytes(handle) for handle in result["handles"]]
        if len(handles) != len(values):
            raise RelayerError(f"Relayer returned {len(handles)} handles for {len(values)} values")
        return EncryptedInput(handles=handles, proof=_to_bytes(result["inputProof"]))


__all__ = ["EncryptionSDK", "RelayerEncryptionClient"]
