"""Forza "Data Out" wire layout — byte offsets, encodings and unit conversions.

The offsets come from community documentation of the Forza Horizon packet
("Dash" format). Every field is a little-endian ``int32`` or ``float32``.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace

INT32 = "int32"
FLOAT32 = "float32"

# kind → little-endian struct codec
CODECS: dict[str, struct.Struct] = {
    INT32: struct.Struct("<i"),
    FLOAT32: struct.Struct("<f"),
}

RAD_PER_S_TO_RPM = 9.5493

FH5_PACKET_SIZE = 331
FH4_PACKET_SIZE = 324

_WHEELS = ("FrontLeft", "FrontRight", "RearLeft", "RearRight")


def rad_per_s_to_rpm(value: float) -> float:
    """Wheel rotation speed in rad/s → revolutions per minute."""
    return value * RAD_PER_S_TO_RPM


def celsius_to_fahrenheit(value: float) -> float:
    return value * 9 / 5 + 32


@dataclass(frozen=True)
class FieldSpec:
    """One named scalar at a fixed byte offset of the packet."""

    name: str
    """Key of the value in the decoded record."""

    offset: int
    kind: str = FLOAT32
    convert: Callable[[float], float] | None = None
    """Applied to the raw wire value after reading."""

    wire_name: str | None = None
    """Name of the field in the wire documentation when it differs from ``name``."""

    @property
    def width(self) -> int:
        return CODECS[self.kind].size

    @property
    def source_name(self) -> str:
        return self.wire_name or self.name


@dataclass(frozen=True)
class PacketSchema:
    """An ordered, immutable table of :class:`FieldSpec` plus the packet size.

    Raises
    ------
    ValueError
        If a field has an unknown kind, a duplicate name, or would read past
        ``size``.
    """

    name: str
    size: int
    fields: tuple[FieldSpec, ...]
    _by_name: dict[str, FieldSpec] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_name: dict[str, FieldSpec] = {}
        for spec in self.fields:
            if spec.kind not in CODECS:
                raise ValueError(f"{self.name}: field {spec.name!r} has unknown kind {spec.kind!r}")
            if spec.offset < 0 or spec.offset + spec.width > self.size:
                raise ValueError(
                    f"{self.name}: field {spec.name!r} at offset {spec.offset} "
                    f"(width {spec.width}) exceeds packet size {self.size}"
                )
            if spec.name in by_name:
                raise ValueError(f"{self.name}: duplicate field name {spec.name!r}")
            by_name[spec.name] = spec
        object.__setattr__(self, "_by_name", by_name)

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self.fields)

    def __len__(self) -> int:
        return len(self.fields)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def lookup(self, name: str) -> FieldSpec:
        """Return the field called *name*; raises ``KeyError`` if unknown."""
        return self._by_name[name]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def resized(self, name: str, size: int) -> PacketSchema:
        """Same field table, different declared packet size."""
        return replace(self, name=name, size=size)


def _wheels(prefix: str, start: int, **kwargs) -> list[FieldSpec]:
    """Four consecutive float32 fields, one per wheel (FL, FR, RL, RR)."""
    wire_prefix = kwargs.pop("wire_prefix", None)
    return [
        FieldSpec(
            f"{prefix}{wheel}",
            start + i * 4,
            wire_name=f"{wire_prefix}{wheel}" if wire_prefix else None,
            **kwargs,
        )
        for i, wheel in enumerate(_WHEELS)
    ]


_FH_FIELDS: tuple[FieldSpec, ...] = (
    # Timing
    FieldSpec("isRaceOn", 0, INT32),
    FieldSpec("timestampMS", 4, INT32),
    # Engine
    FieldSpec("engineMaxRpm", 8),
    FieldSpec("engineIdleRpm", 12),
    FieldSpec("currentEngineRpm", 16),
    # Acceleration, velocity, angular velocity (SI units)
    FieldSpec("accelerationX", 20),
    FieldSpec("accelerationY", 24),
    FieldSpec("accelerationZ", 28),
    FieldSpec("velocityX", 32),
    FieldSpec("velocityY", 36),
    FieldSpec("velocityZ", 40),
    FieldSpec("angularVelocityX", 44),
    FieldSpec("angularVelocityY", 48),
    FieldSpec("angularVelocityZ", 52),
    # Orientation (radians)
    FieldSpec("yaw", 56),
    FieldSpec("pitch", 60),
    FieldSpec("roll", 64),
    # Per-wheel dynamics
    *_wheels("suspensionTravel", 68, wire_prefix="normalizedSuspensionTravel"),
    *_wheels("tireSlipAngle", 84),
    *_wheels("tireCombinedSlip", 100),
    *_wheels("wheelRPM", 116, convert=rad_per_s_to_rpm, wire_prefix="wheelRotationSpeed"),
    # Lap and race
    FieldSpec("lastLapTime", 132),
    FieldSpec("currentLapTime", 136),
    FieldSpec("bestLapTime", 140),
    FieldSpec("lapNumber", 144, INT32),
    FieldSpec("racePosition", 148, INT32),
    FieldSpec("numCars", 152, INT32),
    FieldSpec("sessionType", 156, INT32),
    # Temperatures: Celsius on the wire, Fahrenheit in the record
    *_wheels("tireTemp", 160, convert=celsius_to_fahrenheit),
    *_wheels("brakeTemp", 176, convert=celsius_to_fahrenheit),
    # Pedals
    FieldSpec("clutchPedal", 192),
    FieldSpec("throttlePedal", 196),
    FieldSpec("brakePedal", 200),
    # Fuel
    FieldSpec("fuelLevel", 204),
    FieldSpec("fuelCapacity", 208),
    # Speed
    FieldSpec("speedMS", 212, wire_name="speed"),
    FieldSpec("speedKmh", 216),
    FieldSpec("speedMph", 220),
    # Engine vitals
    FieldSpec("turboBoost", 224),
    FieldSpec("oilTemp", 228, convert=celsius_to_fahrenheit),
    FieldSpec("oilPressure", 232),
    FieldSpec("waterTemp", 236, convert=celsius_to_fahrenheit),
    FieldSpec("fuelPressure", 240),
    FieldSpec("fuelConsumption", 244),
    FieldSpec("fuelMixture", 248),
    # Transmission and inputs
    FieldSpec("currentGear", 252, INT32),
    FieldSpec("suggestedGear", 256, INT32),
    FieldSpec("throttle", 260),
    FieldSpec("brake", 264),
    FieldSpec("clutch", 268),
    # Power
    FieldSpec("engineTorque", 272),
    FieldSpec("enginePower", 276),
    *_wheels("surfaceRumble", 280),
    # 1.0 = new tire, 0.0 = worn out
    *_wheels("tireWear", 296),
)

FH5_SCHEMA = PacketSchema("fh5", FH5_PACKET_SIZE, _FH_FIELDS)
FH4_SCHEMA = FH5_SCHEMA.resized("fh4", FH4_PACKET_SIZE)

SCHEMAS: dict[str, PacketSchema] = {
    FH5_SCHEMA.name: FH5_SCHEMA,
    FH4_SCHEMA.name: FH4_SCHEMA,
}


def get_schema(name: str) -> PacketSchema:
    """Resolve a packet format name (case-insensitive) to its schema."""
    try:
        return SCHEMAS[name.strip().lower()]
    except KeyError:
        raise KeyError(
            f"Unknown packet format {name!r}; expected one of {', '.join(sorted(SCHEMAS))}"
        ) from None
