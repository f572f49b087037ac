"""HTTP diagnostics and the WebSocket feed (FastAPI applications)."""
