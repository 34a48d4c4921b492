"""
HTTP API package: FastAPI app serving on-demand privacy scans.
"""

from solana_privacy_scanner.api_server.server import create_app, get_rpc_client

__all__ = ["create_app", "get_rpc_client"]
