"""
JSON-RPC Provider: lightweight chain reads over httpx.

Uses ``eth_call`` and ``eth_getCode`` to read the ERC-8004 registries, the
ERC-8092 Associations Store and ERC-1271 accounts. No web3.py dependency:
calldata is built with eth-abi and selectors with eth-utils.

For fallback, pass comma-separated URLs:
    AGENTIC_TRUST_RPC_URL=https://alchemy.com/v2/KEY,https://infura.io/v3/KEY

Each endpoint is tried in order. A transport failure on every endpoint raises a
transient NetworkError, which is retried a fixed number of times. An error
object in the JSON-RPC response (e.g. execution reverted) is raised at once.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_abi.exceptions import EncodingError as AbiEncodingError
from eth_utils import function_signature_to_4byte_selector

from agentic_trust.association.address import as_bytes
from agentic_trust.core.exceptions import ConfigurationError, EncodingError, NetworkError
from agentic_trust.core.logging import get_logger
from agentic_trust.resilience.retry import DEFAULT_ATTEMPTS, execute_with_retry

logger = get_logger("chain.provider")


def parse_argument_types(signature: str) -> list[str]:
    """
    Split the argument list of a canonical signature into ABI types.

    ``"getMetadata(uint256,string)"`` -> ``["uint256", "string"]``. Commas
    inside tuple types are kept.
    """
    start = signature.find("(")
    if start < 0 or not signature.endswith(")"):
        raise EncodingError(f"Malformed function signature: {signature}")
    body = signature[start + 1:-1]
    if not body:
        return []

    types: list[str] = []
    depth = 0
    current = ""
    for ch in body:
        if ch == "," and depth == 0:
            types.append(current)
            current = ""
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        current += ch
    types.append(current)
    return types


def encode_call(signature: str, args: Sequence[Any] = ()) -> bytes:
    """Selector of ``signature`` followed by the ABI-encoded arguments."""
    selector = function_signature_to_4byte_selector(signature)
    types = parse_argument_types(signature)
    try:
        return selector + abi_encode(types, list(args))
    except (AbiEncodingError, TypeError, ValueError) as e:
        raise EncodingError(
            f"Cannot encode arguments for {signature}: {e}",
            details={"args": [repr(a) for a in args]},
        ) from e


class JsonRpcProvider:
    """
    JSON-RPC provider for on-chain reads with multi-endpoint fallback.

    Usage:
        provider = JsonRpcProvider(rpc_url="https://eth-sepolia.g.alchemy.com/v2/KEY")
        code = await provider.get_code("0x...")
        (owner,) = await provider.call_function(
            registry, "ownerOf(uint256)", [42], ["address"]
        )
    """

    DEFAULT_TIMEOUT = 10.0  # seconds per JSON-RPC call

    def __init__(
        self,
        rpc_url: str | None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_ATTEMPTS,
        retry_wait: float = 0.5,
    ) -> None:
        """
        Args:
            rpc_url: RPC endpoint URL(s), comma-separated for fallback.
            http_client: Shared httpx client (for connection pooling).
            timeout: Per-request timeout in seconds.
            retries: Attempts for transient failures.
            retry_wait: Initial backoff in seconds between attempts.
        """
        self._rpc_urls: list[str] = [
            u.strip() for u in (rpc_url or "").split(",") if u.strip()
        ]
        if not self._rpc_urls:
            raise ConfigurationError("No RPC URL configured", setting="AGENTIC_TRUST_RPC_URL")
        self._timeout = timeout
        self._retries = retries
        self._retry_wait = retry_wait
        self._http_client = http_client
        self._owns_client = False
        self._request_id = 0

    @property
    def rpc_urls(self) -> list[str]:
        return list(self._rpc_urls)

    async def _get_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ─── JSON-RPC with Multi-Endpoint Fallback ───────────────────────

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send a JSON-RPC request, retrying transient failures."""
        return await execute_with_retry(
            self._request_once,
            method,
            params,
            attempts=self._retries,
            min_wait=self._retry_wait,
        )

    async def _request_once(self, method: str, params: list[Any]) -> Any:
        client = await self._get_client()
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        last_error = NetworkError(f"No RPC provider answered {method}")
        total = len(self._rpc_urls)
        for i, rpc_url in enumerate(self._rpc_urls):
            try:
                response = await client.post(rpc_url, json=payload, timeout=self._timeout)
                response.raise_for_status()
                body = response.json()
            except httpx.TimeoutException:
                logger.debug(f"RPC timeout from provider {i + 1}/{total}: {rpc_url}")
                last_error = NetworkError(f"RPC timeout: {rpc_url}", url=rpc_url)
                continue
            except httpx.HTTPStatusError as e:
                logger.debug(
                    f"RPC HTTP {e.response.status_code} from provider {i + 1}/{total}: {rpc_url}"
                )
                last_error = NetworkError(
                    f"RPC HTTP {e.response.status_code}: {rpc_url}",
                    status_code=e.response.status_code,
                    url=rpc_url,
                )
                continue
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"RPC error from provider {i + 1}/{total}: {e}")
                last_error = NetworkError(f"RPC request failed: {e}", url=rpc_url)
                continue

            error = body.get("error") if isinstance(body, dict) else None
            if error:
                message = error.get("message", error) if isinstance(error, dict) else error
                raise NetworkError(
                    f"RPC error for {method}: {message}",
                    url=rpc_url,
                    rpc_error=error,
                )
            if not isinstance(body, dict) or "result" not in body:
                last_error = NetworkError(f"Malformed RPC response from {rpc_url}", url=rpc_url)
                continue
            return body["result"]

        logger.warning(f"All {total} RPC providers failed for {method}: {last_error}")
        raise last_error

    # ─── Reads ───────────────────────────────────────────────────────

    async def eth_call(self, to: str, data: bytes | str) -> bytes:
        """Execute ``eth_call`` against ``latest`` and return the raw result."""
        calldata = "0x" + as_bytes(data, "data").hex()
        result = await self.request("eth_call", [{"to": to, "data": calldata}, "latest"])
        return as_bytes(result or "0x", "eth_call result")

    async def get_code(self, address: str) -> bytes:
        """Deployed bytecode at ``address`` (empty for EOAs)."""
        result = await self.request("eth_getCode", [address, "latest"])
        return as_bytes(result or "0x", "eth_getCode result")

    async def call_function(
        self,
        to: str,
        signature: str,
        args: Sequence[Any] = (),
        output_types: Sequence[str] = (),
    ) -> tuple[Any, ...]:
        """
        Call a view function and decode its return values.

        Args:
            to: Contract address
            signature: Canonical function signature, e.g. ``"ownerOf(uint256)"``
            args: Positional arguments matching the signature
            output_types: ABI types of the return values

        Raises:
            NetworkError: transport failure or revert
            EncodingError: return data does not match ``output_types``
        """
        raw = await self.eth_call(to, encode_call(signature, args))
        if not output_types:
            return ()
        if not raw:
            raise EncodingError(
                f"Empty result from {signature} at {to}",
                details={"to": to},
            )
        try:
            return tuple(abi_decode(list(output_types), raw))
        except (DecodingError, UnicodeDecodeError, ValueError) as e:
            raise EncodingError(
                f"Cannot decode result of {signature}: {e}",
                details={"to": to, "result": "0x" + raw.hex()},
            ) from e


__all__ = ["JsonRpcProvider", "encode_call", "parse_argument_types"]
