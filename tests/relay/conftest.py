"""Shared helpers for relay tests."""

from __future__ import annotations

import asyncio

import pytest

from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.state import ServerState
from forza_relay.telemetry.decoder import decode, encode_packet


class FakeConnection:
    """Records what the hub writes; optionally fails or stalls on send."""

    def __init__(self, fail_after: int | None = None, stall: bool = False) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.close_code: int | None = None
        self._fail_after = fail_after
        self._stall = stall

    async def send_text(self, data: str) -> None:
        if self._stall:
            await asyncio.Event().wait()
        if self._fail_after is not None and len(self.sent) >= self._fail_after:
            raise ConnectionResetError("peer went away")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True
        self.close_code = code


async def settle(seconds: float = 0.02) -> None:
    """Give delivery tasks a chance to drain their queues."""
    await asyncio.sleep(seconds)


def make_record(rpm: float = 6500.0, sequence: int = 1):
    record = decode(encode_packet({"currentEngineRpm": rpm}))
    return record.stamp(sequence, 1_700_000_000_000 + sequence)


@pytest.fixture
def state() -> ServerState:
    return ServerState()


@pytest.fixture
def hub(state) -> BroadcastHub:
    return BroadcastHub(state, buffer_size=8)
