"""Send synthetic Forza "Data Out" packets to a running relay.

Lets you check the relay, the live test page and any dashboard without the
game running. Values sweep smoothly so the page visibly updates.

Usage:
    uv run python scripts/send_test_packets.py
    uv run python scripts/send_test_packets.py --host 192.168.1.20 --port 5555 --rate 60
    uv run python scripts/send_test_packets.py --count 600 --malformed-every 50
"""

from __future__ import annotations

import argparse
import math
import socket
import time

from forza_relay.telemetry.decoder import encode_packet
from forza_relay.telemetry.schema import get_schema

_WHEELS = ("FrontLeft", "FrontRight", "RearLeft", "RearRight")
_TIRE_RADIUS_M = 0.33


def synthetic_values(t: float, lap_length_s: float = 90.0) -> dict[str, float]:
    """Wire-level values (SI units, Celsius) for elapsed time *t* seconds."""
    phase = (math.sin(t * 0.8) + 1.0) / 2.0  # 0..1
    speed_ms = 15.0 + 55.0 * phase
    rpm = 1200.0 + 6300.0 * phase
    lap_time = t % lap_length_s

    values: dict[str, float] = {
        "isRaceOn": 1,
        "timestampMS": int(t * 1000),
        "engineMaxRpm": 8000.0,
        "engineIdleRpm": 900.0,
        "currentEngineRpm": rpm,
        "accelerationY": 4.0 * math.cos(t * 0.8),
        "velocityY": speed_ms,
        "yaw": math.fmod(t * 0.1, 2 * math.pi) - math.pi,
        "currentLapTime": lap_time,
        "lapNumber": int(t // lap_length_s),
        "racePosition": 3,
        "numCars": 12,
        "throttlePedal": phase,
        "brakePedal": 1.0 - phase if phase < 0.3 else 0.0,
        "fuelLevel": max(0.0, 1.0 - t / 3600.0),
        "fuelCapacity": 60.0,
        "speed": speed_ms,
        "speedKmh": speed_ms * 3.6,
        "speedMph": speed_ms * 2.23694,
        "oilTemp": 95.0 + 10.0 * phase,
        "waterTemp": 88.0 + 6.0 * phase,
        "currentGear": 1 + int(phase * 5),
        "suggestedGear": 1 + int(phase * 5),
        "engineTorque": 300.0 + 150.0 * phase,
        "enginePower": 150000.0 * phase,
    }
    for i, wheel in enumerate(_WHEELS):
        wobble = math.sin(t * 2.0 + i)
        values[f"normalizedSuspensionTravel{wheel}"] = 0.5 + 0.3 * wobble
        values[f"wheelRotationSpeed{wheel}"] = speed_ms / _TIRE_RADIUS_M
        values[f"tireTemp{wheel}"] = 80.0 + 15.0 * phase + 2.0 * i
        values[f"brakeTemp{wheel}"] = 200.0 + 300.0 * (1.0 - phase)
        values[f"tireWear{wheel}"] = max(0.0, 1.0 - t / 7200.0)
    return values


def main() -> None:
    ap = argparse.ArgumentParser(description="Send synthetic Forza telemetry over UDP")
    ap.add_argument("--host", default="127.0.0.1", help="Relay address")
    ap.add_argument("--port", type=int, default=5555, help="Relay UDP port")
    ap.add_argument("--rate", type=float, default=60.0, help="Packets per second")
    ap.add_argument("--count", type=int, default=0, help="Packets to send (0 = until Ctrl+C)")
    ap.add_argument("--packet-format", default="fh5", help="fh5 or fh4")
    ap.add_argument(
        "--malformed-every",
        type=int,
        default=0,
        help="Also send a truncated 10-byte datagram every N packets (0 = never)",
    )
    args = ap.parse_args()

    schema = get_schema(args.packet_format)
    interval = 1.0 / args.rate
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    print(f"Sending {schema.name} packets ({schema.size} bytes) to {args.host}:{args.port} "
          f"at {args.rate:g} Hz. Ctrl+C to stop.")

    sent = 0
    t0 = time.monotonic()
    try:
        while args.count == 0 or sent < args.count:
            t = time.monotonic() - t0
            sock.sendto(encode_packet(synthetic_values(t), schema), (args.host, args.port))
            sent += 1
            if args.malformed_every and sent % args.malformed_every == 0:
                sock.sendto(b"\x00" * 10, (args.host, args.port))
            if sent % 100 == 0:
                print(f"\r{sent} packets sent", end="", flush=True)
            time.sleep(interval)
    except KeyboardInterrupt:
        pass
    finally:
        sock.close()
    print(f"\nDone: {sent} packets sent.")


if __name__ == "__main__":
    main()
