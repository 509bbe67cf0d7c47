import json
import os
from typing import Any, Callable

import httpx
import pytest
from eth_abi import encode as abi_encode
from eth_utils import function_signature_to_4byte_selector

# Well-known development keys (hardhat accounts #0 and #1)
OPERATOR_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OPERATOR_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SECOND_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
SECOND_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

CHAIN_ID = 11155111
RPC_URL = "https://rpc.test"

REPUTATION = "0x" + "11" * 20
IDENTITY = "0x" + "22" * 20
STORE = "0x" + "33" * 20
CLIENT = "0x" + "44" * 20
AUTHORITY = "0x" + "aa" * 20
OWNER = "0x" + "55" * 20
ZERO_ADDRESS = "0x" + "00" * 20

CID = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"

_ENV_NAMES = (
    "PINATA_JWT",
    "PINATA_API_KEY",
    "PINATA_API_SECRET",
    "IPFS_API_URL",
    "IPFS_GATEWAY_URL",
    "ASSOCIATIONS_STORE_PROXY",
)


def abi(types: list[str], values: list[Any]) -> bytes:
    return abi_encode(types, values)


class FakeChain:
    """
    In-memory JSON-RPC endpoint served through ``httpx.MockTransport``.

    Register view-call results with :meth:`on_call`; unregistered calls revert.
    """

    def __init__(self) -> None:
        self.code: dict[str, bytes] = {}
        self._calls: dict[tuple[str, bytes], Any] = {}
        self.requests: list[dict[str, Any]] = []

    def set_code(self, address: str, code: bytes = b"\x60\x80") -> None:
        self.code[address.lower()] = code

    def on_call(self, to: str, signature: str, result: bytes | Callable[[bytes], bytes]) -> None:
        selector = function_signature_to_4byte_selector(signature)
        self._calls[(to.lower(), selector)] = result

    def called(self, to: str, signature: str) -> int:
        selector = "0x" + function_signature_to_4byte_selector(signature).hex()
        return sum(
            1
            for r in self.requests
            if r["method"] == "eth_call"
            and r["params"][0]["to"].lower() == to.lower()
            and r["params"][0]["data"].startswith(selector)
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        method, params = body["method"], body["params"]

        if method == "eth_getCode":
            code = self.code.get(params[0].lower(), b"")
            return self._result(body, "0x" + code.hex())

        if method == "eth_call":
            to = params[0]["to"].lower()
            data = bytes.fromhex(params[0]["data"][2:])
            result = self._calls.get((to, data[:4]))
            if result is None:
                return httpx.Response(
                    200,
                    json={
                        "jsonrpc": "2.0",
                        "id": body["id"],
                        "error": {"code": 3, "message": "execution reverted"},
                    },
                )
            if callable(result):
                result = result(data[4:])
            return self._result(body, "0x" + result.hex())

        return httpx.Response(
            200,
            json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "method not found"}},
        )

    @staticmethod
    def _result(body: dict[str, Any], result: str) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of tests."""
    for name in list(os.environ):
        if name.startswith("AGENTIC_TRUST_") or name in _ENV_NAMES:
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def chain():
    return FakeChain()
