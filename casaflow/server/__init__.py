"""casaflow HTTP API (FastAPI)."""
