"""Relay process — wires the UDP listener, WebSocket feed and diagnostics together.

Usage:
    forza-relay
    forza-relay --udp-port 5300 --ws-port 8765 --http-port 8080
    UDP_PORT=5300 LOG_LEVEL=DEBUG forza-relay
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import socket
import sys

import uvicorn
from dotenv import load_dotenv

from forza_relay.config import RelayConfig
from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.listener import RelayStartupError, start_listener
from forza_relay.relay.state import ServerState
from forza_relay.web.app import create_app
from forza_relay.web.feed import create_feed_app

_logger = logging.getLogger(__name__)

_GRACEFUL_SHUTDOWN_S = 2


class _EmbeddedServer(uvicorn.Server):
    """A uvicorn server that leaves signal handling to the relay."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


def bind_tcp(host: str, port: int, purpose: str) -> socket.socket:
    """Bind a listening TCP socket up front so failures surface before serving.

    Raises
    ------
    RelayStartupError
        Naming *purpose*, host and port.
    """
    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE)
        family = infos[0][0]
        sock = socket.socket(family, socket.SOCK_STREAM)
    except OSError as exc:
        raise RelayStartupError(f"Could not bind {purpose} on {host}:{port}: {exc}") from exc
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(128)
        sock.setblocking(False)
    except OSError as exc:
        sock.close()
        raise RelayStartupError(
            f"Could not bind {purpose} on {host}:{port}: {exc}. "
            "Is the port already in use?"
        ) from exc
    return sock


def _uvicorn_server(app, config: RelayConfig) -> _EmbeddedServer:
    return _EmbeddedServer(
        uvicorn.Config(
            app,
            log_config=None,
            log_level=config.logging_level,
            lifespan="off",
            timeout_graceful_shutdown=_GRACEFUL_SHUTDOWN_S,
        )
    )


def _install_stop_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(stop.set))


def _log_banner(config: RelayConfig) -> None:
    _logger.info("Forza telemetry relay started")
    _logger.info("Listening for Forza UDP data on %s:%d (%s packets, %d bytes)",
                 config.host, config.udp_port, config.schema.name, config.schema.size)
    _logger.info("WebSocket feed at ws://%s:%d/", config.host, config.ws_port)
    _logger.info(
        "HTTP test page at http://%s:%d/ (status at /status)", config.host, config.http_port
    )
    _logger.info(
        "In Forza: Settings > HUD and Gameplay > Data Out = ON, "
        "Data Out IP Address = this machine, Data Out IP Port = %d",
        config.udp_port,
    )


async def serve(config: RelayConfig, stop: asyncio.Event | None = None) -> None:
    """Run the relay until *stop* is set (or SIGINT/SIGTERM when *stop* is None).

    Raises
    ------
    RelayStartupError
        If any of the three sockets cannot be bound; nothing is left open.
    """
    state = ServerState()
    hub = BroadcastHub(state, buffer_size=config.subscriber_buffer)

    transport, _protocol = await start_listener(
        state, hub, host=config.host, port=config.udp_port, schema=config.schema
    )
    sockets: list[socket.socket] = []
    try:
        sockets.append(bind_tcp(config.host, config.ws_port, "WebSocket feed"))
        sockets.append(bind_tcp(config.host, config.http_port, "HTTP diagnostics server"))
    except RelayStartupError:
        transport.close()
        for sock in sockets:
            sock.close()
        raise

    ws_sock, http_sock = sockets
    servers = [
        (_uvicorn_server(create_feed_app(hub), config), ws_sock),
        (_uvicorn_server(create_app(state, hub, ws_port=config.ws_port), config), http_sock),
    ]

    if stop is None:
        stop = asyncio.Event()
        _install_stop_handlers(stop)

    tasks = [asyncio.create_task(server.serve(sockets=[sock])) for server, sock in servers]
    stop_waiter = asyncio.create_task(stop.wait())
    _log_banner(config)

    try:
        done, _pending = await asyncio.wait(
            [stop_waiter, *tasks], return_when=asyncio.FIRST_COMPLETED
        )
        for task in tasks:
            if task in done and task.exception() is not None:
                _logger.error("Server task failed: %s", task.exception())
    finally:
        _logger.info("Shutting down telemetry relay...")
        stop_waiter.cancel()
        transport.close()
        await hub.close()
        for server, _sock in servers:
            server.should_exit = True
        await asyncio.gather(*tasks, return_exceptions=True)
        for sock in sockets:
            sock.close()
        _logger.info("Relay stopped after %d packets", state.packets_received)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Forza telemetry relay — UDP Data Out to WebSocket")
    ap.add_argument("--host", default=None, help="Interface to bind (env HOST, default 0.0.0.0)")
    ap.add_argument("--udp-port", type=int, default=None,
                    help="Forza Data Out port (env UDP_PORT, default 5555)")
    ap.add_argument("--ws-port", type=int, default=None,
                    help="WebSocket feed port (env WS_PORT, default 8765)")
    ap.add_argument("--http-port", type=int, default=None,
                    help="Diagnostics port (env HTTP_PORT, default 8080)")
    ap.add_argument("--packet-format", default=None,
                    help="fh5 or fh4 (env PACKET_FORMAT, default fh5)")
    ap.add_argument("--log-level", default=None, help="Logging level (env LOG_LEVEL, default INFO)")
    return ap.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    load_dotenv()  # .env in the working directory; must run before the environment is read
    args = _parse_args(argv)

    try:
        config = RelayConfig.from_env().with_overrides(
            host=args.host,
            udp_port=args.udp_port,
            ws_port=args.ws_port,
            http_port=args.http_port,
            packet_format=args.packet_format,
            log_level=args.log_level,
        )
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=config.logging_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(serve(config))
    except RelayStartupError as exc:
        _logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
