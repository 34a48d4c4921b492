"""
Application settings: a single snapshot of environment-driven configuration.

Built from the getters in config.env so callers (CLI, API server, scanner)
read one immutable object instead of calling os.getenv in many places.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from solana_privacy_scanner.config import env


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    labels_path: Path
    max_signatures: int
    rpc_max_concurrency: int
    rpc_max_retries: int
    rpc_retry_delay_sec: float
    rpc_timeout_sec: float


def get_settings() -> Settings:
    """Read settings from the environment (and .env) at call time."""
    return Settings(
        rpc_url=env.get_solana_rpc_url(),
        labels_path=env.get_labels_path(),
        max_signatures=env.get_max_signatures(),
        rpc_max_concurrency=env.get_rpc_max_concurrency(),
        rpc_max_retries=env.get_rpc_max_retries(),
        rpc_retry_delay_sec=env.get_rpc_retry_delay_sec(),
        rpc_timeout_sec=env.get_rpc_timeout_sec(),
    )
