"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn solana_privacy_scanner.api_server.app:app --host 0.0.0.0 --port 8000
or: solana-privacy-scanner serve
"""

from solana_privacy_scanner.api_server.server import app

__all__ = ["app"]
