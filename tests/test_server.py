"""
End-to-end tests against a real uvicorn server on an ephemeral port,
using the websockets client library and the interactive shell.
"""

import asyncio
import io
import json
import queue
import socket
from contextlib import asynccontextmanager

import pytest
import websockets
from rich.console import Console

from broadcast_client.shell import InteractiveShell
from broadcast_gateway.components.core.constants import WSCloseCode
from broadcast_gateway.server import build_server
from broadcast_shared.utils.exceptions import ServerUnavailableError
from tests.conftest import wait_until


@asynccontextmanager
async def running_server(config):
    """Serve on 127.0.0.1:<free port>; yields (server, ws_url)."""
    server = build_server("127.0.0.1", 0, config)
    task = asyncio.create_task(server.serve())
    await wait_until(lambda: server.started or task.done(), timeout=5.0)
    assert server.started, "server failed to start"
    try:
        yield server, f"ws://127.0.0.1:{server.bound_port}{config.ws_path}"
    finally:
        server.should_exit = True
        await asyncio.wait_for(task, timeout=10.0)


class LineFeeder:
    """Stand-in for stdin whose lines are supplied by the test."""

    def __init__(self):
        self._lines = queue.Queue()

    def feed(self, line):
        self._lines.put(line)

    def close(self):
        self._lines.put(None)

    def __iter__(self):
        while True:
            line = self._lines.get()
            if line is None:
                return
            yield line


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


async def recv_json(ws):
    return json.loads(await asyncio.wait_for(ws.recv(), timeout=2.0))


class TestRelayServer:

    @pytest.mark.asyncio
    async def test_broadcast_over_real_sockets(self, test_settings):
        async with running_server(test_settings) as (_, url):
            async with websockets.connect(url) as alice, websockets.connect(url) as bob:
                alice_id = (await recv_json(alice))["identity"]
                await recv_json(bob)

                await alice.send(json.dumps({"type": "sendMessage", "body": "hello"}))

                assert await recv_json(bob) == {
                    "type": "receiveMessage",
                    "senderIdentity": alice_id,
                    "body": "hello",
                }

    @pytest.mark.asyncio
    async def test_shutdown_closes_clients_with_going_away(self, test_settings):
        async with running_server(test_settings) as (server, url):
            ws = await websockets.connect(url)
            await recv_json(ws)

            server.should_exit = True
            await asyncio.wait_for(ws.wait_closed(), timeout=5.0)

        assert ws.close_code == WSCloseCode.GOING_AWAY

    @pytest.mark.asyncio
    async def test_listener_closed_before_sessions_drain(self, test_settings):
        attempts = []

        async with running_server(test_settings) as (server, url):
            port = server.bound_port
            drain = server.manager.shutdown

            async def shutdown_after_dialing():
                try:
                    _, writer = await asyncio.open_connection("127.0.0.1", port)
                    writer.close()
                    attempts.append("accepted")
                except OSError:
                    attempts.append("refused")
                return await drain()

            server.manager.shutdown = shutdown_after_dialing
            server.should_exit = True
            await wait_until(lambda: attempts, timeout=5.0)

        assert attempts[0] == "refused"

    @pytest.mark.asyncio
    async def test_health_over_http(self, test_settings):
        async with running_server(test_settings) as (server, _):
            reader, writer = await asyncio.open_connection("127.0.0.1", server.bound_port)
            writer.write(b"GET /health HTTP/1.1\r\nHost: test\r\nConnection: close\r\n\r\n")
            await writer.drain()
            response = await asyncio.wait_for(reader.read(), timeout=2.0)
            writer.close()

        assert response.startswith(b"HTTP/1.1 200")
        assert b'"status":"healthy"' in response


class TestInteractiveShell:

    @pytest.mark.asyncio
    async def test_shell_sends_and_prints_messages(self, test_settings):
        output = io.StringIO()
        feeder = LineFeeder()

        async with running_server(test_settings) as (_, url):
            shell = InteractiveShell(url, console=Console(file=output, width=200), input_stream=feeder)
            shell_task = asyncio.create_task(shell.run())
            await wait_until(lambda: shell.identity is not None)

            async with websockets.connect(url) as peer:
                peer_id = (await recv_json(peer))["identity"]

                await peer.send(json.dumps({"type": "sendMessage", "body": "hi shell"}))
                await wait_until(lambda: f"📢 [{peer_id}]: hi shell" in output.getvalue())

                feeder.feed("  hello peer  \n")
                feeder.feed("\n")
                frame = await recv_json(peer)
                assert frame == {
                    "type": "receiveMessage",
                    "senderIdentity": shell.identity,
                    "body": "hello peer",
                }

                feeder.close()
                assert await asyncio.wait_for(shell_task, timeout=5.0) == 0

        text = output.getvalue()
        assert "✅ Connected to broadcast server!" in text
        assert "👋 Disconnecting from server..." in text

    @pytest.mark.asyncio
    async def test_shell_exits_when_server_stops(self, test_settings):
        output = io.StringIO()
        feeder = LineFeeder()

        async with running_server(test_settings) as (server, url):
            shell = InteractiveShell(url, console=Console(file=output, width=200), input_stream=feeder)
            shell_task = asyncio.create_task(shell.run())
            await wait_until(lambda: shell.identity is not None)

            server.should_exit = True
            assert await asyncio.wait_for(shell_task, timeout=5.0) == 0

        feeder.close()
        assert "❌ Disconnected from server" in output.getvalue()

    @pytest.mark.asyncio
    async def test_unreachable_server_raises(self):
        url = f"ws://127.0.0.1:{free_port()}/ws"
        shell = InteractiveShell(url, console=Console(file=io.StringIO()), open_timeout=1.0)

        with pytest.raises(ServerUnavailableError) as exc_info:
            await shell.run()

        assert exc_info.value.url == url
