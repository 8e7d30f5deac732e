"""JSON-RPC chain gateway over httpx."""

import itertools
import logging
from typing import Any, Optional

import httpx

from swapsim.chain.base import ChainGateway
from swapsim.contracts import decode_revert_reason
from swapsim.errors import RevertError, RpcError, RpcTimeout

logger = logging.getLogger(__name__)

_REVERT_PREFIX = "execution reverted"


def _extract_revert_data(error: dict) -> Optional[str]:
    """Find hex revert data in a JSON-RPC error object.

    Nodes disagree on the shape: geth puts a hex string in ``data``, some
    providers nest it as ``data.data`` or ``data.result``.
    """
    data = error.get("data")
    if isinstance(data, dict):
        data = data.get("data") or data.get("result")
    if isinstance(data, str) and data.startswith("0x"):
        return data
    return None


def parse_rpc_error(error: dict) -> RpcError:
    """Map a JSON-RPC error object to RevertError or RpcError."""
    message = str(error.get("message", "unknown error"))
    data = _extract_revert_data(error)

    if data is not None and len(data) > 2:
        return RevertError(decode_revert_reason(bytes.fromhex(data[2:])), data)

    if _REVERT_PREFIX in message.lower() or error.get("code") == 3:
        reason = message
        lowered = message.lower()
        if lowered.startswith(f"{_REVERT_PREFIX}:"):
            reason = message[len(_REVERT_PREFIX) + 1 :].strip()
        return RevertError(reason or _REVERT_PREFIX, data)

    return RpcError(f"RPC error {error.get('code')}: {message}", {"rpc_error": error})


class JsonRpcGateway(ChainGateway):
    """Chain gateway speaking Ethereum JSON-RPC 2.0.

    One ``httpx.AsyncClient`` is shared by all requests so connections are
    pooled; call ``close()`` on shutdown.
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self._client = client
        self._ids = itertools.count(1)

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def request(self, method: str, params: list) -> Any:
        """Send one JSON-RPC request and return its ``result``."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }

        try:
            response = await self.client.post(self.rpc_url, json=payload)
        except httpx.TimeoutException as e:
            raise RpcTimeout(f"{method} timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise RpcError(f"{method} failed: {e}") from e

        if response.status_code != 200:
            raise RpcError(
                f"{method} failed with HTTP {response.status_code}",
                {"status_code": response.status_code},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RpcError(f"{method} returned invalid JSON") from e

        if data.get("error"):
            raise parse_rpc_error(data["error"])
        if "result" not in data:
            raise RpcError(f"{method} returned no result")

        return data["result"]

    @staticmethod
    def _tx_params(
        to: str,
        data: bytes,
        value: int,
        from_address: Optional[str],
    ) -> dict:
        tx = {"to": to, "data": "0x" + data.hex()}
        if value:
            tx["value"] = hex(value)
        if from_address:
            tx["from"] = from_address
        return tx

    async def call(
        self,
        to: str,
        data: bytes,
        value: int = 0,
        from_address: Optional[str] = None,
    ) -> bytes:
        result = await self.request(
            "eth_call", [self._tx_params(to, data, value, from_address), "latest"]
        )
        return bytes.fromhex(result[2:])

    async def estimate_gas(
        self,
        to: str,
        data: bytes,
        value: int = 0,
        from_address: Optional[str] = None,
    ) -> int:
        result = await self.request(
            "eth_estimateGas", [self._tx_params(to, data, value, from_address)]
        )
        return int(result, 16)

    async def gas_price(self) -> int:
        return int(await self.request("eth_gasPrice", []), 16)

    async def get_balance(self, address: str) -> int:
        return int(await self.request("eth_getBalance", [address, "latest"]), 16)

    async def chain_id(self) -> int:
        return int(await self.request("eth_chainId", []), 16)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
