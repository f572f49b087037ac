"""Tests for the relay process: socket binding, CLI, and a full run."""

from __future__ import annotations

import asyncio
import json
import os
import signal
import socket
import sys

import httpx
import pytest
import websockets

from forza_relay import server
from forza_relay.config import RelayConfig
from forza_relay.relay.listener import RelayStartupError
from forza_relay.server import bind_tcp, serve
from forza_relay.telemetry.decoder import encode_packet


def _free_port(kind: int) -> int:
    with socket.socket(socket.AF_INET, kind) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def config() -> RelayConfig:
    return RelayConfig(
        host="127.0.0.1",
        udp_port=_free_port(socket.SOCK_DGRAM),
        ws_port=_free_port(socket.SOCK_STREAM),
        http_port=_free_port(socket.SOCK_STREAM),
        log_level="WARNING",
    )


# ---------------------------------------------------------------------------
# bind_tcp
# ---------------------------------------------------------------------------


def test_bind_tcp_listens():
    sock = bind_tcp("127.0.0.1", _free_port(socket.SOCK_STREAM), "test")
    try:
        with socket.create_connection(sock.getsockname(), timeout=1.0):
            pass
    finally:
        sock.close()


def test_bind_tcp_port_in_use_names_purpose_and_port():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    port = blocker.getsockname()[1]
    try:
        with pytest.raises(RelayStartupError, match=f"HTTP diagnostics server on 127.0.0.1:{port}"):
            bind_tcp("127.0.0.1", port, "HTTP diagnostics server")
    finally:
        blocker.close()


def test_serve_releases_udp_socket_when_tcp_bind_fails(config):
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", config.ws_port))
    blocker.listen(1)
    try:
        with pytest.raises(RelayStartupError, match="WebSocket feed"):
            asyncio.run(serve(config, stop=asyncio.Event()))
    finally:
        blocker.close()

    # the UDP port is free again
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as udp:
        udp.bind(("127.0.0.1", config.udp_port))


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


@pytest.fixture
def clean_env(monkeypatch):
    for var in ("HOST", "UDP_PORT", "WS_PORT", "HTTP_PORT", "PACKET_FORMAT", "LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(server, "load_dotenv", lambda: None)


def test_main_invalid_port_exits_2(clean_env):
    with pytest.raises(SystemExit) as exc_info:
        server.main(["--udp-port", "70000"])
    assert exc_info.value.code == 2


def test_main_bind_failure_exits_1(clean_env, monkeypatch, caplog):
    async def failing_serve(config):
        raise RelayStartupError(f"Could not bind UDP listener on {config.host}:{config.udp_port}")

    monkeypatch.setattr(server, "serve", failing_serve)
    with pytest.raises(SystemExit) as exc_info:
        server.main(["--udp-port", "5300"])
    assert exc_info.value.code == 1
    assert "0.0.0.0:5300" in caplog.text


def test_main_passes_cli_over_env(clean_env, monkeypatch):
    seen = {}

    async def fake_serve(config):
        seen["config"] = config

    monkeypatch.setenv("UDP_PORT", "6000")
    monkeypatch.setenv("WS_PORT", "6001")
    monkeypatch.setattr(server, "serve", fake_serve)
    server.main(["--udp-port", "7000", "--packet-format", "fh4"])

    config = seen["config"]
    assert config.udp_port == 7000
    assert config.ws_port == 6001
    assert config.packet_format == "fh4"


# ---------------------------------------------------------------------------
# Full run: UDP in, WebSocket out, /status reflects it
# ---------------------------------------------------------------------------


async def _wait_for_http(url: str, timeout: float = 5.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    async with httpx.AsyncClient(trust_env=False) as http:
        while True:
            try:
                await http.get(url)
                return
            except httpx.TransportError:
                if loop.time() > deadline:
                    raise
                await asyncio.sleep(0.05)


def test_serve_end_to_end(config):
    async def scenario():
        stop = asyncio.Event()
        relay = asyncio.create_task(serve(config, stop=stop))
        base = f"http://127.0.0.1:{config.http_port}"
        await _wait_for_http(f"{base}/health")

        sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            async with websockets.connect(f"ws://127.0.0.1:{config.ws_port}/", proxy=None) as ws:
                sender.sendto(b"\x00" * 10, ("127.0.0.1", config.udp_port))
                sender.sendto(
                    encode_packet({"currentEngineRpm": 6500.0}), ("127.0.0.1", config.udp_port)
                )
                message = json.loads(await asyncio.wait_for(ws.recv(), timeout=5.0))
                async with httpx.AsyncClient(trust_env=False) as http:
                    status = (await http.get(f"{base}/status")).json()
        finally:
            sender.close()
            stop.set()
            await asyncio.wait_for(relay, timeout=10.0)
        return message, status

    message, status = asyncio.run(scenario())
    assert message["currentEngineRpm"] == pytest.approx(6500.0)
    assert message["packetCount"] == 1
    assert status["packetsReceived"] == 1
    assert status["packetsDropped"] == 1
    assert status["clientsConnected"] == 1
    assert status["telemetryAvailable"] is True


@pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signal delivery")
def test_sigterm_stops_relay_and_closes_subscribers(config):
    async def scenario():
        relay = asyncio.create_task(serve(config))
        await _wait_for_http(f"http://127.0.0.1:{config.http_port}/health")

        async with websockets.connect(f"ws://127.0.0.1:{config.ws_port}/", proxy=None) as ws:
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.wait_for(relay, timeout=10.0)
            with pytest.raises(websockets.exceptions.ConnectionClosed):
                await asyncio.wait_for(ws.recv(), timeout=5.0)
            return ws.close_code

    assert asyncio.run(scenario()) == 1000

    # the UDP port is released
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as udp:
        udp.bind(("127.0.0.1", config.udp_port))
