"""End-to-end tests of the relay over the FastAPI WebSocket endpoint."""
import json
import time

import pytest
from fastapi.testclient import TestClient

from app import app
from constants import WS_PATH
from conftest import chat, join


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def room_members(client, room_id):
    response = client.get(f"/rooms/{room_id}")
    assert response.status_code == 200
    return response.json()["online_users"]


def connection_count(client):
    return client.get("/health").json()["connections"]


def test_health_reports_connection_count(client):
    baseline = connection_count(client)

    with client.websocket_connect(WS_PATH), client.websocket_connect(WS_PATH):
        assert wait_for(lambda: connection_count(client) == baseline + 2)

    assert wait_for(lambda: connection_count(client) == baseline)


def test_health_payload(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_room_details_for_empty_room(client):
    response = client.get("/rooms/NOBODY-HERE")

    assert response.status_code == 200
    assert response.json() == {"room_id": "NOBODY-HERE", "online_users_count": 0, "online_users": []}


def test_alice_and_bob_in_room1(client):
    room = "ROOM1"
    with client.websocket_connect(WS_PATH) as alice:
        with client.websocket_connect(WS_PATH) as bob:
            alice.send_text(join(room, "Alice"))
            bob.send_text(join(room, "Bob"))
            assert wait_for(lambda: room_members(client, room) == ["Alice", "Bob"])

            alice.send_text(chat("hi"))

            expected = {"type": "chat", "payload": {"message": "hi", "username": "Alice"}}
            assert alice.receive_json() == expected
            assert bob.receive_json() == expected

        assert wait_for(lambda: room_members(client, room) == ["Alice"])

        alice.send_text(chat("hello"))
        assert alice.receive_json() == {"type": "chat", "payload": {"message": "hello", "username": "Alice"}}


def test_rooms_are_isolated(client):
    with client.websocket_connect(WS_PATH) as red, client.websocket_connect(WS_PATH) as blue:
        red.send_text(join("RED", "Rita"))
        blue.send_text(join("BLUE", "Bo"))
        assert wait_for(lambda: room_members(client, "RED") == ["Rita"] and room_members(client, "BLUE") == ["Bo"])

        red.send_text(chat("red only"))
        blue.send_text(chat("blue only"))

        assert red.receive_json()["payload"] == {"message": "red only", "username": "Rita"}
        assert blue.receive_json()["payload"] == {"message": "blue only", "username": "Bo"}


def test_connection_survives_malformed_and_unjoined_messages(client):
    room = "SURVIVOR"
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_text("{not json")
        ws.send_text(json.dumps({"type": "dance", "payload": {}}))
        ws.send_text(chat("before join"))
        ws.send_bytes(b"\x00\x01")

        ws.send_text(join(room, "Sam"))
        ws.send_text(chat("after join"))

        # the first frame delivered back is the post-join chat, nothing earlier
        assert ws.receive_json() == {"type": "chat", "payload": {"message": "after join", "username": "Sam"}}
        assert room_members(client, room) == ["Sam"]


def test_username_comes_from_server_state(client):
    room = "SPOOF"
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_text(join(room, "Mallory"))
        ws.send_text(json.dumps({"type": "chat", "payload": {"message": "hi", "username": "Admin"}}))

        assert ws.receive_json()["payload"] == {"message": "hi", "username": "Mallory"}


def test_disconnect_removes_member(client):
    room = "LEAVERS"
    with client.websocket_connect(WS_PATH) as ws:
        ws.send_text(join(room, "Lee"))
        assert wait_for(lambda: room_members(client, room) == ["Lee"])

    assert wait_for(lambda: room_members(client, room) == [])
