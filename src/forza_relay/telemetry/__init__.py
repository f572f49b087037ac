"""Forza "Data Out" packet decoding.

Public API
----------
PacketSchema     - immutable table of field offsets/encodings/conversions
FieldSpec        - one field of a PacketSchema
FH5_SCHEMA       - 331-byte Forza Horizon 5 layout
FH4_SCHEMA       - 324-byte Forza Horizon 4 layout
get_schema       - resolve a packet format name to its schema
TelemetryRecord  - immutable decoded packet
decode           - bytes → TelemetryRecord | None
encode_packet    - wire values → bytes (test and tooling helper)
"""

from forza_relay.telemetry.decoder import decode, encode_packet
from forza_relay.telemetry.models import TelemetryRecord
from forza_relay.telemetry.schema import (
    FH4_SCHEMA,
    FH5_SCHEMA,
    FieldSpec,
    PacketSchema,
    get_schema,
)

__all__ = [
    "FH4_SCHEMA",
    "FH5_SCHEMA",
    "FieldSpec",
    "PacketSchema",
    "TelemetryRecord",
    "decode",
    "encode_packet",
    "get_schema",
]
