"""Pydantic response schemas for the diagnostics API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StatusResponse(BaseModel):
    """``GET /status`` body; serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    uptime: int
    packets_received: int
    packets_dropped: int
    clients_connected: int
    last_packet_time: str | None
    telemetry_available: bool


class HealthResponse(BaseModel):
    status: str
    version: str
