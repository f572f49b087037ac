"""UDP listener — receives Forza "Data Out" datagrams and publishes them."""

from __future__ import annotations

import asyncio
import logging
import time

from forza_relay.config import DEFAULT_HOST, DEFAULT_UDP_PORT
from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.state import ServerState
from forza_relay.telemetry.decoder import decode
from forza_relay.telemetry.schema import FH5_SCHEMA, PacketSchema

_logger = logging.getLogger(__name__)

_STATUS_LOG_EVERY = 100


class RelayError(Exception):
    """Base class for relay errors."""


class RelayStartupError(RelayError):
    """Raised when a listening socket cannot be bound."""


class TelemetryDatagramProtocol(asyncio.DatagramProtocol):
    """Decodes each datagram and hands accepted records to the hub.

    Short or undecodable datagrams are counted as dropped and otherwise
    ignored; nothing a sender does can stop the receive loop.

    Parameters
    ----------
    state:
        Shared counters; this protocol is their only writer.
    hub:
        Destination for decoded records. ``publish`` never blocks.
    schema:
        Wire layout to decode with.
    """

    def __init__(
        self,
        state: ServerState,
        hub: BroadcastHub,
        schema: PacketSchema = FH5_SCHEMA,
    ) -> None:
        self._state = state
        self._hub = hub
        self._schema = schema
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            self._handle(data, addr)
        except Exception:
            _logger.exception("Unexpected error handling datagram from %s", addr)

    def error_received(self, exc: Exception) -> None:
        _logger.warning("UDP receive error: %s", exc)

    def connection_lost(self, exc: Exception | None) -> None:
        if exc is not None:
            _logger.warning("UDP listener closed with error: %s", exc)

    def _handle(self, data: bytes, addr: tuple[str, int]) -> None:
        record = decode(data, self._schema)
        if record is None:
            self._state.record_drop()
            _logger.debug(
                "Dropped %d-byte datagram from %s (need >= %d)", len(data), addr, self._schema.size
            )
            return

        sequence = self._state.record_packet()
        self._hub.publish(record.stamp(sequence, int(time.time() * 1000)))

        if sequence % _STATUS_LOG_EVERY == 0:
            _logger.info(
                "Received %d packets (%ds uptime)", sequence, round(self._state.uptime_s)
            )


async def start_listener(
    state: ServerState,
    hub: BroadcastHub,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_UDP_PORT,
    schema: PacketSchema = FH5_SCHEMA,
) -> tuple[asyncio.DatagramTransport, TelemetryDatagramProtocol]:
    """Bind the UDP socket on *host*:*port* and start receiving.

    Raises
    ------
    RelayStartupError
        If the socket cannot be bound (port in use, insufficient privilege,
        unknown address).
    """
    loop = asyncio.get_running_loop()
    try:
        transport, protocol = await loop.create_datagram_endpoint(
            lambda: TelemetryDatagramProtocol(state, hub, schema),
            local_addr=(host, port),
        )
    except OSError as exc:
        raise RelayStartupError(
            f"Could not bind UDP telemetry listener on {host}:{port}: {exc}. "
            "Is another program (or another relay) already using this port? "
            "Set UDP_PORT/HOST or pass --udp-port/--host to choose another."
        ) from exc
    return transport, protocol
