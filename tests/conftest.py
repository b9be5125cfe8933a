"""
Pytest configuration and fixtures for relay tests.
"""

import asyncio
from typing import Any, Callable

import pytest
from starlette.websockets import WebSocketState

from broadcast_gateway.components.metrics.collector import MetricsCollector
from broadcast_gateway.connection_manager import ConnectionManager
from broadcast_shared.config.settings import Settings


class FakeClientAddress:
    host = "127.0.0.1"
    port = 50000


class FakeWebSocket:
    """
    Stand-in for a Starlette WebSocket.

    Records every frame sent and the close code. Sends can be made to
    fail, to be slow, or to block forever to simulate a stalled peer.
    """

    def __init__(
        self,
        send_delay: float = 0.0,
        fail_on_send: bool = False,
        block_sends: bool = False,
    ):
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.client = FakeClientAddress()
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.send_delay = send_delay
        self.fail_on_send = fail_on_send
        self.block_sends = block_sends

    async def accept(self) -> None:
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_json(self, payload: dict[str, Any]) -> None:
        if self.fail_on_send:
            raise RuntimeError("connection reset by peer")
        if self.block_sends:
            await asyncio.Event().wait()
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.close_code = code
        self.close_reason = reason
        self.client_state = WebSocketState.DISCONNECTED
        self.application_state = WebSocketState.DISCONNECTED

    @property
    def is_closed(self) -> bool:
        return self.close_code is not None

    def frames(self, frame_type: str) -> list[dict[str, Any]]:
        return [p for p in self.sent if p.get("type") == frame_type]

    def bodies(self) -> list[str]:
        """Bodies of every receiveMessage frame, in arrival order."""
        return [p["body"] for p in self.frames("receiveMessage")]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def test_settings():
    """Settings with short timeouts and small queues."""
    return Settings(
        ws_write_timeout=0.2,
        ws_outbound_queue_size=5,
        ws_shutdown_drain_timeout=0.5,
        ws_accept_timeout=1.0,
        ws_max_total_connections=50,
    )


@pytest.fixture
def manager(test_settings):
    """A fresh ConnectionManager per test."""
    return ConnectionManager(test_settings)


@pytest.fixture
def metrics():
    return MetricsCollector()


@pytest.fixture
def fake_ws_factory():
    """Build FakeWebSockets; pass FakeWebSocket keyword arguments through."""
    def factory(**kwargs: Any) -> FakeWebSocket:
        return FakeWebSocket(**kwargs)

    return factory
