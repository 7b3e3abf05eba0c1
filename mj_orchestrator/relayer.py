"""Lightweight JSON-RPC client for the confidential-computing relayer."""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from .errors import OrchestratorError


class RelayerError(OrchestratorError):
    """Raised when the relayer RPC returns an error."""

    def __init__(self, message: str, *, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


class RelayerRPC:
    """Minimal async JSON-RPC transport shared by the encryption and oracle clients."""

    def __init__(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._url = url
        self._headers = headers or {}
        self._timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return self._url

    async def request(self, method: str, params: list[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": int(time.time() * 1000), "method": method, "params": params}
        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers=self._headers,
            transport=self._transport,
        ) as client:
            try:
                response = await client.post(self._url, json=payload)
            except httpx.HTTPError as exc:
                raise RelayerError(f"Relayer request {method} failed: {exc}") from exc
        if response.status_code >= 400:
            raise RelayerError(f"Relayer responded with HTTP {response.status_code}", code=response.status_code)
        data = response.json()
        if "error" in data:
            error = data["error"] or {}
            raise RelayerError(str(error.get("message") or "Relayer error"), code=error.get("code"))
        return data.get("result")


__all__ = ["RelayerError", "RelayerRPC"]
