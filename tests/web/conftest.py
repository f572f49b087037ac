"""Shared fixtures for web tests."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.state import ServerState
from forza_relay.telemetry.decoder import decode, encode_packet
from forza_relay.web.app import create_app
from forza_relay.web.feed import create_feed_app


@pytest.fixture
def state() -> ServerState:
    return ServerState()


@pytest.fixture
def hub(state) -> BroadcastHub:
    return BroadcastHub(state)


@pytest.fixture
def client(state, hub):
    """Diagnostics app test client."""
    with TestClient(create_app(state, hub, ws_port=9876)) as c:
        yield c


@pytest.fixture
def feed_client(hub):
    """WebSocket feed test client; its portal runs the hub's event loop."""
    with TestClient(create_feed_app(hub)) as c:
        yield c


def make_record(rpm: float = 6500.0, sequence: int = 1, **wire):
    values = {"currentEngineRpm": rpm, **wire}
    return decode(encode_packet(values)).stamp(sequence, 1_700_000_000_000 + sequence)
