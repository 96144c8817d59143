"""Test configuration and fixtures."""
import json

import pytest

from broadcast import BroadcastEngine
from registry import ConnectionRegistry


class FakeTransport:
    """Records every send; ids in ``closed`` report unwritable, ids in ``failing`` fail to send."""

    def __init__(self):
        self.sent = []
        self.closed = set()
        self.failing = set()

    def is_writable(self, connection_id):
        return connection_id not in self.closed

    async def send(self, connection_id, payload):
        self.sent.append((connection_id, payload))
        return connection_id not in self.failing

    def received_by(self, connection_id):
        return [json.loads(payload) for cid, payload in self.sent if cid == connection_id]


def join(room, username):
    return json.dumps({"type": "join", "payload": {"username": username, "roomId": room}})


def chat(message):
    return json.dumps({"type": "chat", "payload": {"message": message}})


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def engine(registry, transport):
    return BroadcastEngine(registry, transport)
