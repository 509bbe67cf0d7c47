"""
IPFS storage: content-addressed uploads and gateway reads over httpx.

Uploads go to Pinata (JWT, or API key + secret) when configured, otherwise to
an IPFS HTTP API node (``/api/v0/add``). Reads accept inline ``data:`` URIs,
``ipfs://`` URIs and gateway URLs (tried across an ordered gateway list), or
plain http(s) URLs.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from typing import Any
from urllib.parse import unquote

import httpx

from agentic_trust.core.config import Config
from agentic_trust.core.exceptions import ConfigurationError, NetworkError, NotFoundError
from agentic_trust.core.logging import get_logger
from agentic_trust.core.types import UploadResult

logger = get_logger("storage.ipfs")

PINATA_PIN_FILE_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
DEFAULT_GATEWAY_URL = "https://gateway.pinata.cloud/ipfs/"

_CID_PATTERNS = [
    re.compile(r"/ipfs/([a-zA-Z0-9]+)"),                 # https://gateway/ipfs/CID
    re.compile(r"^https?://([a-zA-Z0-9]+)\.ipfs\."),     # https://CID.ipfs.gateway
    re.compile(r"^https?://[^/]+/([a-zA-Z0-9]+)$"),      # https://gateway/CID
]
_CID_RE = re.compile(r"^[a-zA-Z0-9]{46,}$")
_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)


def extract_cid(uri: str | None) -> str | None:
    """
    Extract a CID from ``ipfs://CID``, gateway URLs, or a bare CID.

    Returns None when nothing that looks like a CID (46+ alphanumerics) is found.
    """
    if not uri:
        return None
    candidate = re.sub(r"^ipfs://", "", uri.strip())
    for pattern in _CID_PATTERNS:
        match = pattern.search(candidate)
        if match:
            candidate = match.group(1)
            break
    candidate = candidate.split("/")[0].split("?")[0]
    if candidate and _CID_RE.match(candidate):
        return candidate
    return None


def parse_data_uri(uri: str) -> Any | None:
    """
    Parse an inline JSON ``data:`` URI.

    The payload may be plain JSON, URL-encoded JSON, or base64 (when marked
    ``;base64``). Returns None if it cannot be parsed.
    """
    header, sep, payload = uri.partition(",")
    if not sep:
        logger.warning("Invalid data URI format")
        return None

    attempts: list[str] = []
    if header.endswith(";base64"):
        try:
            attempts.append(base64.b64decode(payload, validate=False).decode("utf-8"))
        except (binascii.Error, UnicodeDecodeError):
            pass
    attempts.extend([payload, unquote(payload)])

    for text in attempts:
        try:
            return json.loads(text)
        except ValueError:
            continue
    logger.warning("Failed to parse inline data URI")
    return None


class IPFSStorage:
    """
    IPFS storage client.

    Usage:
        storage = IPFSStorage(pinata_jwt="...")
        result = await storage.upload_json({"hello": "world"}, "hello.json")
        data = await storage.fetch_json(result.token_uri)
    """

    DEFAULT_TIMEOUT = 10.0  # seconds per request

    def __init__(
        self,
        pinata_jwt: str | None = None,
        pinata_api_key: str | None = None,
        pinata_api_secret: str | None = None,
        ipfs_api_url: str | None = None,
        gateway_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._pinata_jwt = pinata_jwt
        self._pinata_api_key = pinata_api_key
        self._pinata_api_secret = pinata_api_secret
        self._ipfs_api_url = ipfs_api_url.rstrip("/") if ipfs_api_url else None
        self._gateway_url = gateway_url if gateway_url.endswith("/") else gateway_url + "/"
        self._timeout = timeout
        self._http_client = http_client
        self._owns_http_client = False

    @classmethod
    def from_config(
        cls, config: Config, http_client: httpx.AsyncClient | None = None
    ) -> IPFSStorage:
        return cls(
            pinata_jwt=config.pinata_jwt,
            pinata_api_key=config.pinata_api_key,
            pinata_api_secret=config.pinata_api_secret,
            ipfs_api_url=config.ipfs_api_url,
            gateway_url=config.ipfs_gateway_url,
            timeout=config.http_timeout,
            http_client=http_client,
        )

    @property
    def uses_pinata(self) -> bool:
        return bool(self._pinata_jwt or (self._pinata_api_key and self._pinata_api_secret))

    @property
    def can_upload(self) -> bool:
        return self.uses_pinata or bool(self._ipfs_api_url)

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy-init HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
            self._owns_http_client = True
        return self._http_client

    async def close(self) -> None:
        """Close owned HTTP client."""
        if self._owns_http_client and self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    # ─── Upload ──────────────────────────────────────────────────────

    async def upload(self, data: str | bytes, filename: str = "data.txt") -> UploadResult:
        """
        Upload content and return its CID.

        Raises:
            ConfigurationError: no upload method is configured
            NetworkError: the storage API failed or returned no CID
        """
        content = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        content_type = "text/plain" if isinstance(data, str) else "application/octet-stream"
        files = {"file": (filename, content, content_type)}

        if self.uses_pinata:
            cid = await self._post_upload(
                PINATA_PIN_FILE_URL,
                files=files,
                data={
                    "pinataMetadata": json.dumps({"name": filename}),
                    "pinataOptions": json.dumps({"cidVersion": 0}),
                },
                headers=self._pinata_headers(),
                cid_keys=("IpfsHash", "cid"),
                service="Pinata",
            )
        elif self._ipfs_api_url:
            cid = await self._post_upload(
                f"{self._ipfs_api_url}/api/v0/add",
                files=files,
                cid_keys=("Hash", "cid"),
                service="IPFS API",
            )
        else:
            raise ConfigurationError(
                "No IPFS storage method configured. Provide PINATA_JWT, "
                "PINATA_API_KEY/PINATA_API_SECRET, or IPFS_API_URL.",
                setting="PINATA_JWT",
            )

        logger.info(f"Uploaded {filename} ({len(content)} bytes) to IPFS: {cid}")
        return UploadResult(
            cid=cid,
            url=self._gateway_url + cid,
            token_uri=f"ipfs://{cid}",
            size=len(content),
        )

    async def upload_json(self, obj: Any, filename: str = "data.json") -> UploadResult:
        """Upload ``obj`` as pretty-printed JSON."""
        return await self.upload(json.dumps(obj, indent=2), filename)

    def _pinata_headers(self) -> dict[str, str]:
        if self._pinata_jwt:
            return {"Authorization": f"Bearer {self._pinata_jwt}"}
        return {
            "pinata_api_key": self._pinata_api_key or "",
            "pinata_secret_api_key": self._pinata_api_secret or "",
        }

    async def _post_upload(
        self,
        url: str,
        files: dict[str, Any],
        cid_keys: tuple[str, ...],
        service: str,
        data: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> str:
        client = await self._get_http_client()
        try:
            response = await client.post(
                url, files=files, data=data, headers=headers, timeout=self._timeout
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"{service} upload failed: {e}", url=url) from e

        if response.status_code >= 400:
            try:
                reason = response.json().get("error", response.reason_phrase)
            except ValueError:
                reason = response.reason_phrase
            raise NetworkError(
                f"{service} upload failed: {reason}",
                status_code=response.status_code,
                url=url,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NetworkError(f"{service} returned a non-JSON response", url=url) from e
        for key in cid_keys:
            if body.get(key):
                return str(body[key])
        raise NetworkError(f"{service} response did not include a CID", url=url, details=body)

    # ─── Read ────────────────────────────────────────────────────────

    def get_url(self, cid_or_uri: str) -> str:
        """Gateway URL for a CID, ``ipfs://`` URI, or gateway URL."""
        cid = extract_cid(cid_or_uri)
        if cid:
            return self._gateway_url + cid
        if _HTTP_RE.match(cid_or_uri):
            return cid_or_uri
        raise NotFoundError(f"Invalid CID or tokenUri: {cid_or_uri}", resource_id=cid_or_uri)

    @staticmethod
    def gateway_urls(cid: str, uri: str = "") -> list[str]:
        """Ordered gateway URLs for ``cid``; the service hinted by ``uri`` goes first."""
        pinata = [
            f"https://gateway.pinata.cloud/ipfs/{cid}",
            f"https://{cid}.ipfs.mypinata.cloud",
        ]
        web3_storage = [
            f"https://{cid}.ipfs.w3s.link",
            f"https://w3s.link/ipfs/{cid}",
        ]
        public = [
            f"https://ipfs.io/ipfs/{cid}",
            f"https://cloudflare-ipfs.com/ipfs/{cid}",
            f"https://dweb.link/ipfs/{cid}",
            f"https://gateway.ipfs.io/ipfs/{cid}",
        ]
        if "pinata" in uri:
            return pinata + web3_storage + public
        return web3_storage + pinata + public

    async def get(self, cid_or_uri: str) -> bytes:
        """
        Raw content for a CID, trying each gateway in turn.

        Raises:
            NotFoundError: no CID in the input, or every gateway failed
        """
        cid = extract_cid(cid_or_uri)
        if not cid:
            raise NotFoundError(f"Invalid CID or tokenUri: {cid_or_uri}", resource_id=cid_or_uri)

        client = await self._get_http_client()
        for url in self.gateway_urls(cid, cid_or_uri):
            try:
                response = await client.get(url, timeout=self._timeout)
            except httpx.HTTPError as e:
                logger.debug(f"IPFS gateway {url} failed: {e}")
                continue
            if response.is_success:
                return response.content
        raise NotFoundError(f"All IPFS gateways failed for CID {cid}", resource_id=cid)

    async def fetch_json(self, token_uri: str | None) -> Any | None:
        """
        Fetch and parse JSON from a token URI.

        Returns None when the URI is empty, unparseable, or every source fails.
        """
        if not token_uri:
            return None
        if token_uri.startswith("data:"):
            return parse_data_uri(token_uri)

        cid = extract_cid(token_uri)
        if cid:
            for url in self.gateway_urls(cid, token_uri):
                result = await self._fetch_json_url(url)
                if result is not None:
                    return result
            logger.warning(f"All IPFS gateways failed for CID: {cid[:40]}")

        if _HTTP_RE.match(token_uri):
            return await self._fetch_json_url(token_uri)
        return None

    async def _fetch_json_url(self, url: str) -> Any | None:
        client = await self._get_http_client()
        try:
            response = await client.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException:
            logger.debug(f"JSON fetch timed out: {url}")
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"JSON fetch failed for {url}: {e}")
            return None


__all__ = ["IPFSStorage", "extract_cid", "parse_data_uri", "PINATA_PIN_FILE_URL"]
