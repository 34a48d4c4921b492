"""
Configuration management for the Solana Privacy Scanner.

Loads settings from environment variables (and .env) and exposes a single
snapshot of service configuration. Privacy policies live in config.policy.
"""

from solana_privacy_scanner.config.settings import Settings, get_settings  # noqa: F401

__all__ = ["Settings", "get_settings"]
