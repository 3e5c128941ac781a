"""HTTP API (FastAPI) for the Web Intelligence engine."""

from .server import API_VERSION, DEFAULT_API_PORT, create_api_server, run_api_server

__all__ = ["API_VERSION", "DEFAULT_API_PORT", "create_api_server", "run_api_server"]
