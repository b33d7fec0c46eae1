"""
Relay Client - Authenticated JSON-RPC Calls

Sends single JSON-RPC requests to one relay endpoint. When the relay has a
signing account, every request body is hashed and signed, and the result is
attached as the `X-Flashbots-Signature` header.

Key Features:
- Per-client monotonically increasing request ids
- Request signing with an eth_account searcher identity
- Typed errors for client, server, protocol and decoding failures
- Optional shared aiohttp session across relays
- Request latency and failure statistics

File: flashbundle/relay.py
"""

import asyncio
import json
import logging
import time
from collections import deque
from typing import Any, Deque, Dict, Optional

import aiohttp
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import encode_hex, keccak

from .exceptions import (
    RelayClientError,
    RelayProtocolError,
    ResponseDecodeError,
    SigningError,
    TransportError,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================

FLASHBOTS_SIGNATURE_HEADER = "X-Flashbots-Signature"

DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_CONNECTION_LIMIT = 100

_LATENCY_WINDOW = 100


def create_session(
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    connection_limit: int = DEFAULT_CONNECTION_LIMIT
) -> aiohttp.ClientSession:
    """
    Create an HTTP session suitable for sharing between relays.

    Must be called from within a running event loop.

    Args:
        request_timeout: Total request timeout in seconds
        connect_timeout: Connection timeout in seconds
        connection_limit: Maximum number of pooled connections

    Returns:
        Configured aiohttp client session
    """
    timeout = aiohttp.ClientTimeout(total=request_timeout, connect=connect_timeout)
    connector = aiohttp.TCPConnector(
        limit=connection_limit,
        limit_per_host=max(1, connection_limit // 2),
        keepalive_timeout=30
    )
    return aiohttp.ClientSession(
        timeout=timeout,
        connector=connector,
        headers={'User-Agent': 'flashbundle/1.0'}
    )


# =============================================================================
# RELAY CLIENT
# =============================================================================

class Relay:
    """
    A relay client for one endpoint.

    Signs every request when a signer is configured. A relay without a signer
    sends no authentication header, which is useful for plain nodes that only
    serve simulations.

    Cloning a relay (`clone()` or `copy.copy`) keeps the URL, signer and HTTP
    session but resets the request id counter to zero, so concurrent users of
    separate clones never share a counter.
    """

    def __init__(
        self,
        url: str,
        signer: Optional[LocalAccount] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        """
        Initialize a relay client.

        Args:
            url: Relay endpoint URL
            signer: Searcher identity used to sign requests
            session: Shared HTTP session; one is created lazily if omitted
        """
        self.url = url
        self.signer = signer
        self.logger = logging.getLogger(f"{__name__}.Relay")

        self._id = 0
        self._session = session
        self._owns_session = False

        # Performance tracking
        self._total_requests = 0
        self._failed_requests = 0
        self._latencies: Deque[float] = deque(maxlen=_LATENCY_WINDOW)

    @property
    def request_id(self) -> int:
        """Id of the most recently issued request (0 before the first one)."""
        return self._id

    def clone(self) -> "Relay":
        """Copy this relay with a fresh request id counter."""
        return Relay(self.url, self.signer, self._session)

    def __copy__(self) -> "Relay":
        return self.clone()

    def __repr__(self) -> str:
        signer = self.signer.address if self.signer is not None else None
        return f"Relay(url={self.url!r}, signer={signer!r})"

    async def __aenter__(self) -> "Relay":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP session if this relay created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
            self.logger.debug(f"Closed HTTP session for {self.url}")
        self._session = None
        self._owns_session = False

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_session()
            self._owns_session = True
        return self._session

    def _next_id(self) -> int:
        self._id += 1
        return self._id

    def build_body(self, request_id: int, method: str, params: Any) -> bytes:
        """
        Serialize a JSON-RPC request body.

        Args:
            request_id: Request id
            method: JSON-RPC method name
            params: Single structured argument, wrapped in a one-element list

        Returns:
            Exact bytes sent to the relay
        """
        if hasattr(params, "to_dict"):
            params = params.to_dict()
        payload = {
            "id": request_id,
            "jsonrpc": "2.0",
            "method": method,
            "params": [params]
        }
        return json.dumps(payload, separators=(",", ":")).encode("utf-8")

    def sign_body(self, body: bytes) -> str:
        """
        Produce the authentication header value for a request body.

        The signer signs the text `0x<keccak256(body)>` as a personal message.

        Args:
            body: Exact request body

        Returns:
            `<checksum address>:<0x signature>`

        Raises:
            SigningError: If no signer is configured or signing fails
        """
        if self.signer is None:
            raise SigningError("Relay has no signer configured", self.url)

        message = encode_defunct(text=encode_hex(keccak(body)))
        try:
            signed = self.signer.sign_message(message)
        except Exception as e:
            raise SigningError(f"Could not sign relay request: {e}", self.url) from e

        return f"{self.signer.address}:{encode_hex(signed.signature)}"

    async def request(self, method: str, params: Any) -> Any:
        """
        Send a request to the relay.

        Args:
            method: JSON-RPC method name
            params: Structured argument (dict or object with `to_dict()`)

        Returns:
            Decoded `result` field; None when the relay returned `null`

        Raises:
            SigningError: If the request could not be signed
            TransportError: On connection failures, timeouts and 5xx responses
            RelayClientError: On 4xx responses
            RelayProtocolError: If the response carries a JSON-RPC error
            ResponseDecodeError: If the response could not be decoded
        """
        request_id = self._next_id()
        body = self.build_body(request_id, method, params)

        headers = {"Content-Type": "application/json"}
        if self.signer is not None:
            headers[FLASHBOTS_SIGNATURE_HEADER] = self.sign_body(body)

        session = await self._get_session()
        self._total_requests += 1
        request_start = time.perf_counter()

        self.logger.debug(f"Sending {method} (id {request_id}) to {self.url}")

        try:
            async with session.post(self.url, data=body, headers=headers) as response:
                status = response.status
                raw = await response.read()
        except asyncio.TimeoutError as e:
            self._failed_requests += 1
            raise TransportError(f"Request to {self.url} timed out", self.url) from e
        except aiohttp.ClientError as e:
            self._failed_requests += 1
            raise TransportError(f"Network error: {e}", self.url) from e
        finally:
            self._latencies.append((time.perf_counter() - request_start) * 1000)

        try:
            return self._parse_response(status, raw)
        except Exception:
            self._failed_requests += 1
            raise

    def _parse_response(self, status: int, raw: bytes) -> Any:
        # Error bodies are diagnostic text only.
        text = raw.decode("utf-8", errors="replace")
        if 400 <= status < 500:
            self.logger.warning(f"{self.url} rejected request with HTTP {status}: {text[:200]}")
            raise RelayClientError(text, status, self.url)
        if not 200 <= status < 300:
            raise TransportError(f"HTTP {status}: {text[:200]}", self.url, status)

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ResponseDecodeError(str(e), text, self.url) from e

        try:
            envelope = json.loads(text)
        except json.JSONDecodeError as e:
            raise ResponseDecodeError(str(e), text, self.url) from e

        if not isinstance(envelope, dict):
            raise ResponseDecodeError("expected a JSON object", text, self.url)

        error = envelope.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RelayProtocolError(
                    code=error.get("code", 0),
                    message=error.get("message", "Unknown relay error"),
                    data=error.get("data"),
                    relay_url=self.url
                )
            raise RelayProtocolError(code=0, message=str(error), relay_url=self.url)

        if "result" not in envelope:
            raise ResponseDecodeError("response has neither result nor error", text, self.url)

        return envelope["result"]

    def get_statistics(self) -> Dict[str, Any]:
        """Get request statistics for this relay."""
        avg_latency = 0.0
        if self._latencies:
            avg_latency = sum(self._latencies) / len(self._latencies)

        return {
            "url": self.url,
            "signed": self.signer is not None,
            "total_requests": self._total_requests,
            "failed_requests": self._failed_requests,
            "average_latency_ms": round(avg_latency, 2),
            "last_request_id": self._id
        }


__all__ = [
    'Relay',
    'FLASHBOTS_SIGNATURE_HEADER',
    'create_session',
]
