"""Packet decoder — raw Forza "Data Out" bytes → :class:`TelemetryRecord`."""

from __future__ import annotations

import math
import struct
from collections.abc import Mapping

from forza_relay.telemetry.models import Scalar, TelemetryRecord
from forza_relay.telemetry.schema import CODECS, FH5_SCHEMA, FLOAT32, PacketSchema


def _sanitize(value: float) -> float:
    """Replace NaN/Inf (common in garbage datagrams) with 0.0."""
    return value if math.isfinite(value) else 0.0


def decode(buffer: bytes, schema: PacketSchema = FH5_SCHEMA) -> TelemetryRecord | None:
    """Decode one datagram according to *schema*.

    Returns ``None`` when *buffer* is shorter than ``schema.size``; nothing is
    read in that case. Bytes past the last schema field are ignored. Never
    raises for any input buffer.
    """
    if len(buffer) < schema.size:
        return None

    values: dict[str, Scalar] = {}
    try:
        for spec in schema:
            (raw,) = CODECS[spec.kind].unpack_from(buffer, spec.offset)
            if spec.convert is not None:
                raw = spec.convert(raw)
            values[spec.name] = _sanitize(raw) if spec.kind == FLOAT32 else raw
    except struct.error:
        return None

    return TelemetryRecord(values)


def encode_packet(
    values: Mapping[str, Scalar],
    schema: PacketSchema = FH5_SCHEMA,
    size: int | None = None,
) -> bytes:
    """Pack wire-level *values* into a zero-filled packet.

    Keys are wire names (``wheelRotationSpeedFrontLeft``, ``speed`` ...) or
    record names for fields whose names match; values are in wire units
    (rad/s, Celsius), i.e. before any conversion the decoder applies.

    Raises
    ------
    KeyError
        If a key names no field of *schema*.
    """
    by_source = {spec.source_name: spec for spec in schema}
    buf = bytearray(size if size is not None else schema.size)
    for key, value in values.items():
        spec = by_source.get(key)
        if spec is None:
            spec = schema.lookup(key)
        codec = CODECS[spec.kind]
        codec.pack_into(buf, spec.offset, int(value) if spec.kind != FLOAT32 else float(value))
    return bytes(buf)
