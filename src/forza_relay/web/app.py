"""FastAPI diagnostics application — status counters and a live test page."""

from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from forza_relay import __version__
from forza_relay.config import DEFAULT_WS_PORT
from forza_relay.relay.hub import BroadcastHub
from forza_relay.relay.state import ServerState
from forza_relay.web.schemas import HealthResponse, StatusResponse

_HERE = Path(__file__).parent

templates = Jinja2Templates(directory=str(_HERE / "templates"))


def create_app(
    state: ServerState,
    hub: BroadcastHub,
    ws_port: int = DEFAULT_WS_PORT,
) -> FastAPI:
    """Build the diagnostics app over *state* and *hub*.

    Every endpoint only reads; none of them touches the counters or the
    subscriber registry.
    """
    app = FastAPI(title="Forza Telemetry Relay", version=__version__)

    @app.get("/", response_class=HTMLResponse)
    def live_page(request: Request) -> HTMLResponse:
        """Minimal page that subscribes to the feed and renders live values."""
        return templates.TemplateResponse(request, "live.html", {"ws_port": ws_port})

    @app.get("/status", response_model=StatusResponse, response_model_by_alias=True)
    async def status() -> StatusResponse:
        # runs on the event loop, so the counters are read between updates
        last_packet_at = state.last_packet_at
        return StatusResponse(
            uptime=round(state.uptime_s),
            packets_received=state.packets_received,
            packets_dropped=state.packets_dropped,
            clients_connected=hub.subscriber_count,
            last_packet_time=last_packet_at.isoformat() if last_packet_at else None,
            telemetry_available=state.has_telemetry,
        )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    return app
