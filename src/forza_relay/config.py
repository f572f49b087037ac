"""Relay configuration from environment variables (and ``.env`` files)."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace

from forza_relay.telemetry.schema import SCHEMAS, PacketSchema, get_schema

DEFAULT_HOST = "0.0.0.0"
DEFAULT_UDP_PORT = 5555
DEFAULT_WS_PORT = 8765
DEFAULT_HTTP_PORT = 8080
DEFAULT_BUFFER_SIZE = 256

_PORT_VARS = (("UDP_PORT", "udp_port"), ("WS_PORT", "ws_port"), ("HTTP_PORT", "http_port"))

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _port(name: str, raw: str) -> int:
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer port number, got {raw!r}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"{name} must be between 1 and 65535, got {port}")
    return port


@dataclass(frozen=True)
class RelayConfig:
    """Everything the relay reads from its environment.

    Construct with :meth:`from_env`; direct construction is validated too.
    """

    host: str = DEFAULT_HOST
    udp_port: int = DEFAULT_UDP_PORT
    ws_port: int = DEFAULT_WS_PORT
    http_port: int = DEFAULT_HTTP_PORT
    packet_format: str = "fh5"
    log_level: str = "INFO"
    subscriber_buffer: int = DEFAULT_BUFFER_SIZE

    def __post_init__(self) -> None:
        for name in ("udp_port", "ws_port", "http_port"):
            _port(name.upper(), str(getattr(self, name)))
        if self.packet_format.lower() not in SCHEMAS:
            raise ValueError(
                f"PACKET_FORMAT must be one of {', '.join(sorted(SCHEMAS))}, "
                f"got {self.packet_format!r}"
            )
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got {self.log_level!r}"
            )
        if self.subscriber_buffer < 1:
            raise ValueError(f"SUBSCRIBER_BUFFER must be >= 1, got {self.subscriber_buffer}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelayConfig:
        """Build a config from *environ* (default ``os.environ``).

        Unset variables keep their defaults.

        Raises
        ------
        ValueError
            Naming the variable and the offending value.
        """
        env = os.environ if environ is None else environ
        kwargs: dict = {}
        if env.get("HOST"):
            kwargs["host"] = env["HOST"]
        for var, attr in _PORT_VARS:
            if env.get(var):
                kwargs[attr] = _port(var, env[var])
        if env.get("PACKET_FORMAT"):
            kwargs["packet_format"] = env["PACKET_FORMAT"]
        if env.get("LOG_LEVEL"):
            kwargs["log_level"] = env["LOG_LEVEL"]
        if env.get("SUBSCRIBER_BUFFER"):
            raw = env["SUBSCRIBER_BUFFER"]
            try:
                kwargs["subscriber_buffer"] = int(raw)
            except ValueError:
                raise ValueError(f"SUBSCRIBER_BUFFER must be an integer, got {raw!r}") from None
        return cls(**kwargs)

    def with_overrides(self, **overrides) -> RelayConfig:
        """Return a copy with every non-``None`` override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def schema(self) -> PacketSchema:
        return get_schema(self.packet_format)

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level.upper())
