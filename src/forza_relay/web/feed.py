"""WebSocket feed — one connection task per subscriber, delivery via the hub."""

from __future__ import annotations

from fastapi import FastAPI, WebSocket

from forza_relay import __version__
from forza_relay.relay.hub import BroadcastHub


def _remote(websocket: WebSocket) -> str:
    client = websocket.client
    return f"{client.host}:{client.port}" if client else "unknown"


def create_feed_app(hub: BroadcastHub) -> FastAPI:
    """Build the app served on the WebSocket port.

    Each connection is accepted, registered with *hub* and then only waits
    for the client to go away; the hub pushes every record to it.
    """
    app = FastAPI(title="Forza Telemetry Feed", version=__version__)

    @app.websocket("/")
    async def feed(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = hub.subscribe(websocket, remote=_remote(websocket))
        if subscriber.closed:
            # relay is shutting down
            await websocket.close(code=1001)
            return
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            hub.unsubscribe(subscriber)

    return app
