"""Forza telemetry relay — UDP "Data Out" packets fanned out over WebSocket."""

__version__ = "0.1.0"
