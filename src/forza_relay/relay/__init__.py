"""UDP ingestion, shared state and WebSocket fan-out.

Public API
----------
ServerState               - packet counters and the last decoded record
BroadcastHub              - subscriber registry and fan-out
Subscriber                - one registered connection
TelemetryDatagramProtocol - asyncio UDP protocol feeding the hub
start_listener            - bind the UDP socket
RelayError                - base relay exception
RelayStartupError         - a socket could not be bound
"""

from forza_relay.relay.hub import BroadcastHub, Subscriber
from forza_relay.relay.listener import (
    RelayError,
    RelayStartupError,
    TelemetryDatagramProtocol,
    start_listener,
)
from forza_relay.relay.state import ServerState

__all__ = [
    "BroadcastHub",
    "RelayError",
    "RelayStartupError",
    "ServerState",
    "Subscriber",
    "TelemetryDatagramProtocol",
    "start_listener",
]
