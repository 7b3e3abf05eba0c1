"""Decryption oracle boundary."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from .errors import OracleTimeoutError
from .relayer import RelayerError, RelayerRPC

logger = logging.getLogger(__name__)


class OracleService(Protocol):
    """External service that services decryption requests off-ledger."""

    async def await_completion(self) -> None:  # pragma: no cover - protocol
        """Block until previously requested decryptions have been serviced."""


async def await_oracle(oracle: OracleService, timeout: float) -> None:
    """Await the oracle's completion signal, failing with :class:`OracleTimeoutError`."""

    try:
        await asyncio.wait_for(oracle.await_completion(), timeout)
    except asyncio.TimeoutError as exc:
        logger.error("Decryption oracle did not complete within %.1fs", timeout)
        raise OracleTimeoutError(
            f"Decryption oracle did not signal completion within {timeout:.1f}s", timeout=timeout
        ) from exc


@dataclass
class OracleOptions:
    """Polling configuration when waiting for the oracle to drain."""

    poll_interval: float = 2.0


class RelayerOracleClient:
    """Polls the relayer until no decryption request is pending."""

    def __init__(self, rpc: RelayerRPC, *, options: OracleOptions | None = None) -> None:
        self._rpc = rpc
        self._options = options or OracleOptions()

    async def pending_requests(self) -> int:
        result = await self._rpc.request("oracle_pendingRequests", [])
        try:
            return int(result)
        except (TypeError, ValueError) as exc:
            raise RelayerError(f"Relayer returned an invalid pending count: {result!r}") from exc

    async def await_completion(self) -> None:
        while True:
            pending = await self.pending_requests()
            if pending == 0:
                return
            logger.debug("Waiting for the oracle to decrypt values (%d pending)", pending)
            await asyncio.sleep(self._options.poll_interval)


__all__ = ["OracleOptions", "OracleService", "RelayerOracleClient", "await_oracle"]
