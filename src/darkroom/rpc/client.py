"""Remote-procedure client for the managed database's RPC endpoint.

Procedures are invoked as ``POST {base_url}/rest/v1/rpc/{name}`` with the
named parameters as a JSON object. A procedure that runs but reports an
error (HTTP >= 400) comes back as ``RpcResult.error``; only transport
failures raise.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class RpcTransportError(Exception):
    """The procedure could not be reached or the response was unreadable."""


@dataclass
class RpcError:
    message: str
    code: str | None = None
    details: str | None = None
    status_code: int | None = None


@dataclass
class RpcResult:
    data: Any = None
    error: RpcError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class RpcClient:
    """Thin async wrapper around ``httpx.AsyncClient`` for procedure calls."""

    def __init__(
        self,
        base_url: str,
        service_key: str = "",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if service_key:
            headers["apikey"] = service_key
            headers["Authorization"] = f"Bearer {service_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def call(self, name: str, params: dict[str, Any] | None = None) -> RpcResult:
        try:
            response = await self._client.post(f"/rest/v1/rpc/{name}", json=params or {})
        except httpx.HTTPError as exc:
            logger.warning("RPC %s transport failure: %s", name, exc)
            raise RpcTransportError(f"{name}: {exc}") from exc

        if response.status_code >= 400:
            return RpcResult(error=self._parse_error(name, response))

        if not response.content:
            return RpcResult(data=None)
        try:
            return RpcResult(data=response.json())
        except ValueError as exc:
            raise RpcTransportError(f"{name}: response was not JSON") from exc

    @staticmethod
    def _parse_error(name: str, response: httpx.Response) -> RpcError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        return RpcError(
            message=body.get("message") or f"{name} failed with HTTP {response.status_code}",
            code=body.get("code"),
            details=body.get("details") or body.get("hint"),
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        await self._client.aclose()
