"""Minimal async JSON-RPC client for EVM chains.

Speaks JSON-RPC 2.0 over HTTP with httpx. Transport failures raise
RpcUnavailable; error objects returned by the node raise RpcError.
"""

import itertools
import logging
from typing import Any, Optional, Union

import httpx

logger = logging.getLogger(__name__)

BlockTag = Union[int, str]


class RpcUnavailable(Exception):
    """Raised when the RPC endpoint cannot be reached or answers with HTTP errors."""


class RpcError(Exception):
    """Raised when the node returns a JSON-RPC error object."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


def to_block_param(block: BlockTag) -> str:
    """Convert a block number or tag to its JSON-RPC form."""
    if isinstance(block, int):
        return hex(block)
    return block


class JsonRpcClient:
    """JSON-RPC client bound to a single endpoint.

    A fresh httpx.AsyncClient is opened per request so the client can be
    shared freely between coroutines. `transport` lets tests inject an
    httpx.MockTransport.
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._ids = itertools.count(1)

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        """Perform a JSON-RPC call and return its `result` field."""
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params or [],
            "id": next(self._ids),
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise RpcUnavailable(f"{method}: cannot reach {self.url}: {e}") from e

        if response.status_code >= 500 or response.status_code == 429:
            raise RpcUnavailable(f"{method}: HTTP {response.status_code} from endpoint")
        if response.status_code != 200:
            raise RpcError(response.status_code, f"{method}: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise RpcError(None, f"{method}: invalid JSON response") from e

        if "error" in data and data["error"] is not None:
            error = data["error"]
            if isinstance(error, dict):
                raise RpcError(error.get("code"), error.get("message", ""), error.get("data"))
            raise RpcError(None, str(error))

        return data.get("result")

    async def chain_id(self) -> int:
        return int(await self.call("eth_chainId"), 16)

    async def block_number(self) -> int:
        return int(await self.call("eth_blockNumber"), 16)

    async def get_logs(
        self,
        address: str,
        topics: list,
        from_block: BlockTag,
        to_block: BlockTag,
    ) -> list[dict]:
        """Fetch raw logs for a contract address and topic filter."""
        params = {
            "address": address,
            "topics": topics,
            "fromBlock": to_block_param(from_block),
            "toBlock": to_block_param(to_block),
        }
        return await self.call("eth_getLogs", [params]) or []

    async def eth_call(self, to: str, data: str, block: BlockTag = "latest") -> str:
        return await self.call("eth_call", [{"to": to, "data": data}, to_block_param(block)])

    async def estimate_gas(self, tx: dict) -> int:
        return int(await self.call("eth_estimateGas", [tx]), 16)

    async def gas_price(self) -> int:
        return int(await self.call("eth_gasPrice"), 16)

    async def get_transaction_count(self, address: str, block: BlockTag = "pending") -> int:
        return int(await self.call("eth_getTransactionCount", [address, to_block_param(block)]), 16)

    async def send_raw_transaction(self, raw_tx: str) -> str:
        if not raw_tx.startswith("0x"):
            raw_tx = f"0x{raw_tx}"
        return await self.call("eth_sendRawTransaction", [raw_tx])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict]:
        """Return the receipt, or None while the transaction is pending."""
        return await self.call("eth_getTransactionReceipt", [tx_hash])
