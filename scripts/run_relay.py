"""Run the Forza telemetry relay.

Usage:
    uv run python scripts/run_relay.py
    uv run python scripts/run_relay.py --udp-port 5300
    uv run python scripts/run_relay.py --packet-format fh4 --log-level DEBUG

Equivalent to the ``forza-relay`` console script. Press Ctrl+C to stop.
"""

from __future__ import annotations

from forza_relay.server import main

if __name__ == "__main__":
    main()
