"""
WebSocket tests: handshake, presence, live pushes and reconnects.
"""

import pytest
from starlette.websockets import WebSocketDisconnect


pytestmark = pytest.mark.unit


@pytest.fixture
def users(seed_users):
    seed_users("u1", "u2")


def test_unknown_user_is_refused(app, client, users):
    with client.websocket_connect("/ws?userId=ghost") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 4001
    assert app.state.registry.lookup("ghost") is None


def test_missing_user_id_is_refused(client, users):
    with client.websocket_connect("/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()

    assert exc_info.value.code == 4001


def test_connected_receiver_gets_new_message(client, users):
    with client.websocket_connect("/ws?userId=u2") as ws:
        assert ws.receive_json() == {"type": "presence", "data": {"online": ["u2"]}}

        response = client.post("/api/messages/send/u2", json={"message": "hi"}, headers={"X-User-Id": "u1"})
        assert response.status_code == 200

        event = ws.receive_json()
        assert event["type"] == "message.created"
        assert event["data"] == response.json()["data"]


def test_sender_sees_receiver_come_online(client, users):
    with client.websocket_connect("/ws?userId=u1") as alice:
        alice.receive_json()
        with client.websocket_connect("/ws?userId=u2") as bob:
            assert bob.receive_json() == {"type": "presence", "data": {"online": ["u1", "u2"]}}
            assert alice.receive_json() == {"type": "presence", "data": {"online": ["u1", "u2"]}}

        assert alice.receive_json() == {"type": "presence", "data": {"online": ["u1"]}}


def test_ping_gets_pong(client, users):
    with client.websocket_connect("/ws?userId=u1") as ws:
        ws.receive_json()
        ws.send_json({"type": "ping"})

        assert ws.receive_json() == {"type": "pong", "data": {}}


def test_binary_and_malformed_frames_are_ignored(client, users):
    with client.websocket_connect("/ws?userId=u1") as ws:
        ws.receive_json()
        ws.send_bytes(b"\x00\x01")
        ws.send_text("not json")
        ws.send_json(["ping"])
        ws.send_json({"type": "ping"})

        assert ws.receive_json() == {"type": "pong", "data": {}}


def test_new_connection_supersedes_old_one(app, client, users):
    with client.websocket_connect("/ws?userId=u2") as first:
        first.receive_json()

        with client.websocket_connect("/ws?userId=u2") as second:
            with pytest.raises(WebSocketDisconnect) as exc_info:
                first.receive_json()
            assert exc_info.value.code == 4000

            assert second.receive_json() == {"type": "presence", "data": {"online": ["u2"]}}
            assert app.state.registry.lookup("u2") is not None

            client.post("/api/messages/send/u2", json={"message": "hi"}, headers={"X-User-Id": "u1"})
            assert second.receive_json()["data"]["body"] == "hi"

    assert app.state.registry.lookup("u2") is None
