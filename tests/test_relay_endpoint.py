"""
Tests for the relay WebSocket endpoint and HTTP routes, driven through
FastAPI's TestClient.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from broadcast_gateway.components.core.constants import WSCloseCode
from broadcast_gateway.components.endpoints.relay import RelayEndpoint
from broadcast_gateway.connection_manager import ConnectionManager
from broadcast_gateway.main import create_app
from broadcast_shared.config.settings import Settings


@pytest.fixture
def client(test_settings):
    manager = ConnectionManager(test_settings)
    app = create_app(manager, test_settings)
    with TestClient(app) as client:
        yield client


def welcome(ws) -> str:
    frame = ws.receive_json()
    assert frame["type"] == "welcome"
    return frame["identity"]


class TestRelay:

    def test_clients_get_sequential_identities(self, client):
        with client.websocket_connect("/ws") as first:
            assert welcome(first) == "Client#1"
            with client.websocket_connect("/ws") as second:
                assert welcome(second) == "Client#2"

    def test_message_relayed_to_others_not_sender(self, client):
        with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
            alice_id = welcome(alice)
            welcome(bob)

            alice.send_json({"type": "sendMessage", "body": "hello"})
            assert bob.receive_json() == {
                "type": "receiveMessage",
                "senderIdentity": alice_id,
                "body": "hello",
            }

            # The pong is the next frame alice sees, so her own message never came back
            alice.send_json({"type": "ping"})
            assert alice.receive_json() == {"type": "pong"}

    def test_three_clients_each_receive_once(self, client):
        with client.websocket_connect("/ws") as a, client.websocket_connect("/ws") as b, \
                client.websocket_connect("/ws") as c:
            for ws in (a, b, c):
                welcome(ws)

            b.send_json({"type": "sendMessage", "body": "from b"})

            assert a.receive_json()["body"] == "from b"
            assert c.receive_json()["body"] == "from b"
            b.send_json({"type": "ping"})
            assert b.receive_json() == {"type": "pong"}

    def test_messages_from_one_sender_keep_order(self, client):
        with client.websocket_connect("/ws") as sender, client.websocket_connect("/ws") as receiver:
            welcome(sender)
            welcome(receiver)

            for i in range(10):
                sender.send_json({"type": "sendMessage", "body": f"m{i}"})

            bodies = [receiver.receive_json()["body"] for _ in range(10)]
            assert bodies == [f"m{i}" for i in range(10)]

    def test_disconnected_client_no_longer_receives(self, client):
        with client.websocket_connect("/ws") as stayer:
            welcome(stayer)
            with client.websocket_connect("/ws") as leaver:
                welcome(leaver)

            stayer.send_json({"type": "sendMessage", "body": "anyone?"})
            stayer.send_json({"type": "ping"})
            assert stayer.receive_json() == {"type": "pong"}

        assert client.app.state.manager.active_connections == 0

    def test_malformed_frame_closes_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome(ws)

            ws.send_text("this is not json")

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == WSCloseCode.UNSUPPORTED_DATA

        stats = client.app.state.manager.get_stats()
        assert stats["metrics"]["connections_malformed_frames"] == 1

    def test_binary_frame_closes_connection(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome(ws)

            ws.send_bytes(b"\x00\x01")

            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == WSCloseCode.UNSUPPORTED_DATA

    def test_bad_frame_does_not_affect_other_clients(self, client):
        with client.websocket_connect("/ws") as good, client.websocket_connect("/ws") as other:
            welcome(good)
            welcome(other)
            with client.websocket_connect("/ws") as bad:
                welcome(bad)
                bad.send_json({"type": "sendMessage", "body": 123})
                with pytest.raises(WebSocketDisconnect):
                    bad.receive_json()

            good.send_json({"type": "sendMessage", "body": "still here"})
            assert other.receive_json()["body"] == "still here"


class TestAdmission:

    def test_connection_over_capacity_is_refused(self):
        config = Settings(ws_max_total_connections=1)
        app = create_app(ConnectionManager(config), config)

        with TestClient(app) as client:
            with client.websocket_connect("/ws") as first:
                welcome(first)
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    with client.websocket_connect("/ws"):
                        pass
                assert exc_info.value.code == WSCloseCode.SERVER_OVERLOADED

    @pytest.mark.asyncio
    async def test_rejected_during_shutdown_with_going_away(self, manager, fake_ws_factory):
        await manager.shutdown()
        ws = fake_ws_factory()

        await RelayEndpoint(ws, manager).run()

        assert ws.close_code == WSCloseCode.GOING_AWAY
        assert manager.active_connections == 0


class TestHealth:

    def test_health_reports_connections(self, client):
        with client.websocket_connect("/ws") as ws:
            welcome(ws)
            response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "broadcast-server"
        assert data["active_connections"] == 1
