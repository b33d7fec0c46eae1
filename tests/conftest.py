"""
Shared fixtures: a local fake relay server and searcher identities.

Run with: python -m pytest tests -v
"""

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer
from eth_account import Account

SEARCHER_KEY = "0x" + "1" * 64
WALLET_KEY = "0x" + "2" * 64

BUNDLE_HASH = "0x73b1e258c7a42fd0230b2fd05529c5d4b6fcb66c227783f8bece8aeacdd1db2e"


@dataclass
class RecordedRequest:
    headers: Any
    body: bytes
    payload: Any


@dataclass
class FakeRelay:
    """Records every JSON-RPC call and replays queued responses."""
    responses: List[Tuple[int, Union[bytes, str, dict]]] = field(default_factory=list)
    default: Tuple[int, Union[bytes, str, dict]] = (200, {"jsonrpc": "2.0", "id": 1, "result": None})
    requests: List[RecordedRequest] = field(default_factory=list)
    url: Optional[str] = None

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.read()
        self.requests.append(
            RecordedRequest(headers=request.headers.copy(), body=body, payload=json.loads(body))
        )
        status, payload = self.responses.pop(0) if self.responses else self.default
        if isinstance(payload, dict):
            payload = json.dumps(payload)
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return web.Response(status=status, body=payload, content_type="application/json")

    def reply(self, status: int = 200, result: Any = None, **envelope) -> None:
        """Queue a response; `error=...` replaces the result."""
        payload = {"jsonrpc": "2.0", "id": 1}
        if "error" in envelope:
            payload["error"] = envelope["error"]
        else:
            payload["result"] = result
        self.responses.append((status, payload))

    def reply_raw(self, status: int, body: Union[bytes, str]) -> None:
        self.responses.append((status, body))

    @property
    def methods(self) -> List[str]:
        return [request.payload["method"] for request in self.requests]


@pytest_asyncio.fixture
async def relay_factory():
    """Start any number of fake relays; all are shut down after the test."""
    servers = []

    async def start(default: Optional[Tuple[int, Union[bytes, str, dict]]] = None) -> FakeRelay:
        fake = FakeRelay()
        if default is not None:
            fake.default = default
        app = web.Application()
        app.router.add_post("/", fake.handle)
        server = TestServer(app)
        await server.start_server()
        fake.url = str(server.make_url("/"))
        servers.append(server)
        return fake

    yield start

    for server in servers:
        await server.close()


@pytest_asyncio.fixture
async def fake_relay(relay_factory) -> FakeRelay:
    return await relay_factory()


@pytest.fixture
def searcher():
    """Searcher identity used to sign relay requests."""
    return Account.from_key(SEARCHER_KEY)


@pytest.fixture
def signed_transaction():
    """A signed legacy transfer from the test wallet."""
    return Account.sign_transaction(
        {
            "to": "0x0000000000000000000000000000000000000000",
            "value": 100,
            "gas": 21000,
            "gasPrice": 1_000_000_000,
            "nonce": 0,
            "chainId": 1,
        },
        WALLET_KEY,
    )


@pytest.fixture
def simulated_bundle_payload():
    return {
        "bundleGasPrice": "476190476193",
        "bundleHash": BUNDLE_HASH,
        "coinbaseDiff": "20000000000126000",
        "ethSentToCoinbase": "20000000000000000",
        "gasFees": "126000",
        "results": [
            {
                "coinbaseDiff": "10000000000063000",
                "ethSentToCoinbase": "10000000000000000",
                "fromAddress": "0x02A727155aeF8609c9f7F2179b2a1f560B39F5A0",
                "gasFees": "63000",
                "gasPrice": "476190476193",
                "gasUsed": 21000,
                "toAddress": "0x73625f59CAdc5009Cb458B751b3E7b6b48C06f2C",
                "txHash": "0x669b4704a7d993a946cdd6e2f95233f308ce0c4649d2e04944e8299efcaa098a",
                "value": "0x",
                "error": "execution reverted"
            },
            {
                "coinbaseDiff": "10000000000063000",
                "ethSentToCoinbase": "10000000000000000",
                "fromAddress": "0x02A727155aeF8609c9f7F2179b2a1f560B39F5A0",
                "gasFees": "63000",
                "gasPrice": "476190476193",
                "gasUsed": 21000,
                "toAddress": "0x73625f59CAdc5009Cb458B751b3E7b6b48C06f2C",
                "txHash": "0xa839ee83465657cac01adc1d50d96c1b586ed498120a84a64749c0034b4f19fa",
                "value": "0x01"
            },
            {
                "coinbaseDiff": "10000000000063000",
                "ethSentToCoinbase": "10000000000000000",
                "fromAddress": "0x02A727155aeF8609c9f7F2179b2a1f560B39F5A0",
                "gasFees": "63000",
                "gasPrice": "476190476193",
                "gasUsed": 21000,
                "toAddress": "0x",
                "txHash": "0xa839ee83465657cac01adc1d50d96c1b586ed498120a84a64749c0034b4f19fa",
                "value": "0x"
            }
        ],
        "stateBlockNumber": 5221585,
        "totalGasUsed": 42000
    }
