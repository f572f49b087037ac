"""ServerState — process-wide counters and the last decoded record."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from forza_relay.telemetry.models import TelemetryRecord


@dataclass
class ServerState:
    """Counters shared by the listener, the hub and the diagnostics server.

    Writers
    -------
    - the UDP listener calls :meth:`record_packet` / :meth:`record_drop`;
    - the broadcast hub assigns :attr:`last_record` on publish.

    The diagnostics server only reads. Everything runs on the event loop
    thread, so a read never observes a half-updated state.
    """

    packets_received: int = 0
    packets_dropped: int = 0
    last_record: TelemetryRecord | None = None
    last_packet_at: datetime | None = None
    started_monotonic: float = field(default_factory=time.monotonic)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def record_packet(self) -> int:
        """Count one accepted packet; return its 1-based sequence number."""
        self.packets_received += 1
        self.last_packet_at = datetime.now(timezone.utc)
        return self.packets_received

    def record_drop(self) -> None:
        self.packets_dropped += 1

    @property
    def uptime_s(self) -> float:
        return time.monotonic() - self.started_monotonic

    @property
    def has_telemetry(self) -> bool:
        return self.last_record is not None
