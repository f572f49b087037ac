"""Telemetry data models."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Any

Scalar = int | float


@dataclass(frozen=True)
class TelemetryRecord:
    """A single decoded Forza telemetry packet.

    ``values`` is a read-only mapping keyed by the schema's field names
    (``currentEngineRpm``, ``tireTempFrontLeft`` ...). Records produced by the
    decoder carry no metadata; the listener stamps each accepted packet with
    :meth:`stamp`.
    """

    values: Mapping[str, Scalar]

    sequence_number: int = 0
    """1-based count of accepted packets at the time this one was received."""

    received_at_ms: int = 0
    """Wall-clock receipt time, milliseconds since the Unix epoch."""

    def __post_init__(self) -> None:
        if not isinstance(self.values, MappingProxyType):
            object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    def __getitem__(self, name: str) -> Scalar:
        return self.values[name]

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def stamp(self, sequence_number: int, received_at_ms: int) -> TelemetryRecord:
        """Return a copy carrying receipt metadata."""
        return replace(self, sequence_number=sequence_number, received_at_ms=received_at_ms)

    def to_dict(self) -> dict[str, Any]:
        """Flat JSON-ready dict: every decoded field plus ``timestamp`` and ``packetCount``."""
        data: dict[str, Any] = dict(self.values)
        data["timestamp"] = self.received_at_ms
        data["packetCount"] = self.sequence_number
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))
