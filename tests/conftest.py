"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ.pop("ZENITH_PRIVATE_KEY", None)

from zenithswap.config import Settings
from zenithswap.resolver.client import ExchangeAPIClient
from zenithswap.storage.base import MemoryKeyValueStore
from zenithswap.storage.snapshot import PersistenceAdapter
from zenithswap.swap.orchestrator import SwapOrchestrator
from zenithswap.wallet.gateway import WalletGateway
from zenithswap.wallet.local import LocalAccountProvider

# Well-known development key (never holds funds)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

TARGET_CHAIN_ID = 80002
BTC_DEST = "bcrt1q7dp2ceypu7695utwjwzs3qs2nqxt4060a7yymn"
DEPOSIT_ADDRESS = "bcrt1qm3ftvwuzz3hx8dnwtq5uazfnmptt6qe4nzt3vg"

HAPPY_QUOTE_PARAMS = {
    "fromChainId": TARGET_CHAIN_ID,
    "fromTokenAddress": "0x0000000000000000000000000000000000000000",
    "toChainId": 0,
    "toTokenAddress": "BTC",
    "amount": "1000000000000000",
}


class FakeClock:
    """Sleep replacement whose sleepers only wake on ``tick()``."""

    def __init__(self):
        self.sleeps: list[float] = []
        self._waiters: list[asyncio.Future] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        await waiter

    @property
    def sleeping(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def settle(self, rounds: int = 20) -> None:
        """Let every runnable task reach its next suspension point."""
        for _ in range(rounds):
            await asyncio.sleep(0)

    async def tick(self) -> None:
        """Wake all current sleepers and let them run."""
        await self.settle()
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
        await self.settle()


class SlowSigner(LocalAccountProvider):
    """Provider whose signing prompt is never answered."""

    async def request(self, method, params=None):
        if method == "personal_sign":
            await asyncio.sleep(60)
        return await super().request(method, params)


class FakeResolver:
    """In-process resolver backend served through ``httpx.MockTransport``."""

    def __init__(self):
        self.quote_response: dict[str, Any] = {
            "quoteId": "q1",
            "toTokenAmount": "100000",
            "fee": "0",
            "estimatedTime": 300,
        }
        self.initiate_response: dict[str, Any] = {
            "swapId": "s1",
            "btcDepositAddress": DEPOSIT_ADDRESS,
            "expiresAt": "2026-01-01T00:00:00Z",
        }
        self.quote_status = 200
        self.initiate_status = 200
        # Served in order; the last entry repeats
        self.statuses: list[tuple[int, dict[str, Any]]] = [
            (200, {"status": "PENDING_DEPOSIT", "message": "Waiting for deposit"})
        ]
        self.requests: list[httpx.Request] = []
        self.fail_transport = False

    def push_status(self, payload: dict[str, Any], status_code: int = 200) -> None:
        self.statuses.append((status_code, payload))

    def set_statuses(self, *entries: dict[str, Any]) -> None:
        self.statuses = [(200, entry) for entry in entries]

    def bodies(self, path: str) -> list[dict]:
        return [
            json.loads(request.content)
            for request in self.requests
            if request.url.path == path and request.content
        ]

    def count(self, path_prefix: str) -> int:
        return sum(1 for request in self.requests if request.url.path.startswith(path_prefix))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        path = request.url.path
        if request.method == "POST" and path == "/quote":
            return httpx.Response(self.quote_status, json=self.quote_response)
        if request.method == "POST" and path == "/swap/initiate":
            return httpx.Response(self.initiate_status, json=self.initiate_response)
        if request.method == "GET" and path.startswith("/swap/status/"):
            status_code, payload = self.statuses[0]
            if len(self.statuses) > 1:
                self.statuses.pop(0)
            return httpx.Response(status_code, json=payload)
        return httpx.Response(404, json={"error": "Not found"})


def make_settings(**overrides) -> Settings:
    values = {
        "resolver_api_url": "http://resolver.test",
        "poll_interval": 15.0,
        "storage_path": "./unused-session.json",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return make_settings()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    """In-memory key-value store."""
    return MemoryKeyValueStore()


@pytest.fixture
def provider() -> LocalAccountProvider:
    """Local wallet on the target chain."""
    return LocalAccountProvider(TEST_PRIVATE_KEY, chain_id=TARGET_CHAIN_ID)


@pytest.fixture
def gateway(provider, store) -> WalletGateway:
    """Wallet gateway over the local provider."""
    return WalletGateway(provider, store)


@pytest.fixture
def resolver() -> FakeResolver:
    """Fake resolver backend."""
    return FakeResolver()


@pytest_asyncio.fixture
async def api(resolver):
    """API client routed to the fake resolver."""
    client = ExchangeAPIClient(
        "http://resolver.test", transport=httpx.MockTransport(resolver.handler)
    )
    yield client
    await client.close()


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock for the status poller."""
    return FakeClock()


@pytest.fixture
def persistence(store) -> PersistenceAdapter:
    """Session persistence over the in-memory store."""
    return PersistenceAdapter(store)


def make_orchestrator(
    gateway: WalletGateway,
    api: ExchangeAPIClient,
    persistence: PersistenceAdapter,
    clock: FakeClock,
    settings: Optional[Settings] = None,
) -> SwapOrchestrator:
    return SwapOrchestrator(
        wallet=gateway,
        api=api,
        persistence=persistence,
        settings=settings or make_settings(),
        sleep=clock.sleep,
    )


@pytest_asyncio.fixture
async def orchestrator(gateway, api, persistence, clock, settings):
    """Orchestrator with a connected wallet."""
    await gateway.connect()
    orch = make_orchestrator(gateway, api, persistence, clock, settings)
    yield orch
    await orch.close()
