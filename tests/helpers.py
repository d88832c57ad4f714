"""Shared test helpers: addresses, event builders and a fake JSON-RPC node."""

import json
from typing import Any

import httpx

from vault_migrator.chain.rpc import JsonRpcClient
from vault_migrator.source.base import MigrationEvent

OLD_VAULT = "0x1111111111111111111111111111111111111111"
NEW_VAULT = "0x2222222222222222222222222222222222222222"
ZERO = "0x0000000000000000000000000000000000000000"
# Well-known throwaway key, never funded
TEST_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


def user_address(n: int) -> str:
    """Deterministic non-zero address for user number n."""
    return "0x" + f"{n + 1:040x}"


def make_events(count: int, amount: int = 10**18, start: int = 0) -> list[MigrationEvent]:
    return [
        MigrationEvent(
            user=user_address(start + i),
            amount=amount,
            timestamp=1_700_000_000 + i,
            block_number=100 + i,
            log_index=0,
        )
        for i in range(count)
    ]


class FakeNode:
    """Scriptable JSON-RPC node behind an httpx.MockTransport.

    Handlers are keyed by method name; a handler is either a fixed result,
    a callable taking the params list, or an exception instance to raise.
    Error responses are produced with `error(code, message, data)`.
    """

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.calls: list[tuple[str, list]] = []

    def on(self, method: str, result: Any) -> "FakeNode":
        self.handlers[method] = result
        return self

    @staticmethod
    def error(code: int, message: str, data: Any = None) -> dict:
        return {"__error__": {"code": code, "message": message, "data": data}}

    def methods(self) -> list[str]:
        return [m for m, _ in self.calls]

    def _handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body.get("params", [])
        self.calls.append((method, params))

        if method not in self.handlers:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "method not found"}}
            )

        handler = self.handlers[method]
        if isinstance(handler, Exception):
            raise handler
        result = handler(params) if callable(handler) else handler
        if isinstance(result, httpx.Response):
            return result
        if isinstance(result, dict) and "__error__" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": result["__error__"]})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def client(self) -> JsonRpcClient:
        return JsonRpcClient("http://node.test", timeout=5.0, transport=self.transport())


