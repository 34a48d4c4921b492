"""
Environment variable loading for the Solana Privacy Scanner.

- SOLANA_NETWORK: devnet | mainnet (default: mainnet)
- SOLANA_RPC_URL: RPC endpoint (read from .env)
- HELIUS_API_KEY: Helius API key (fallback for RPC URL)
- PRIVACY_SCANNER_LABELS_PATH: known-address label file (default: bundled labels)
- RPC_MAX_CONCURRENCY, RPC_MAX_RETRIES, RPC_RETRY_DELAY_SEC, RPC_TIMEOUT_SEC
- SCAN_MAX_SIGNATURES: default signature limit for wallet scans
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# config is solana_privacy_scanner/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEVNET_RPC_URL = "https://api.devnet.solana.com"
MAINNET_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_MAINNET_URL_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_DEVNET_URL_TEMPLATE = "https://devnet.helius-rpc.com/?api-key={key}"

DEFAULT_LABELS_PATH = _PACKAGE_DIR / "labels" / "known_addresses.json"

DEFAULT_RPC_MAX_CONCURRENCY = 10
DEFAULT_RPC_MAX_RETRIES = 3
DEFAULT_RPC_RETRY_DELAY_SEC = 1.0
DEFAULT_RPC_TIMEOUT_SEC = 30.0
DEFAULT_MAX_SIGNATURES = 100


def load_scanner_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set vars."""
    load_dotenv(_ENV_PATH, override=False)


def _get_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_solana_network() -> str:
    """
    Return SOLANA_NETWORK from env: devnet | mainnet.
    Default: mainnet (privacy scans target real activity).
    """
    load_scanner_env()
    raw = (os.getenv("SOLANA_NETWORK") or os.getenv("SOLANA_CLUSTER") or "mainnet").strip().lower()
    if raw == "devnet":
        return "devnet"
    return "mainnet"


def get_solana_rpc_url() -> str:
    """
    Resolve Solana RPC URL from env.
    Order: SOLANA_RPC_URL > HELIUS_API_KEY (network-specific) > devnet/mainnet default.
    """
    load_scanner_env()
    url = (os.getenv("SOLANA_RPC_URL") or "").strip()
    if url:
        return url
    key = (os.getenv("HELIUS_API_KEY") or "").strip()
    network = get_solana_network()
    if key:
        if network == "devnet":
            return HELIUS_DEVNET_URL_TEMPLATE.format(key=key)
        return HELIUS_MAINNET_URL_TEMPLATE.format(key=key)
    return DEVNET_RPC_URL if network == "devnet" else MAINNET_RPC_URL


def get_labels_path() -> Path:
    """Return PRIVACY_SCANNER_LABELS_PATH, or the bundled known-address file."""
    load_scanner_env()
    raw = (os.getenv("PRIVACY_SCANNER_LABELS_PATH") or "").strip()
    return Path(raw) if raw else DEFAULT_LABELS_PATH


def get_rpc_max_concurrency() -> int:
    load_scanner_env()
    return max(1, _get_int("RPC_MAX_CONCURRENCY", DEFAULT_RPC_MAX_CONCURRENCY))


def get_rpc_max_retries() -> int:
    load_scanner_env()
    return max(0, _get_int("RPC_MAX_RETRIES", DEFAULT_RPC_MAX_RETRIES))


def get_rpc_retry_delay_sec() -> float:
    load_scanner_env()
    return max(0.0, _get_float("RPC_RETRY_DELAY_SEC", DEFAULT_RPC_RETRY_DELAY_SEC))


def get_rpc_timeout_sec() -> float:
    load_scanner_env()
    return _get_float("RPC_TIMEOUT_SEC", DEFAULT_RPC_TIMEOUT_SEC)


def get_max_signatures() -> int:
    load_scanner_env()
    return max(1, _get_int("SCAN_MAX_SIGNATURES", DEFAULT_MAX_SIGNATURES))


def mask_rpc_url(url: str) -> str:
    """Mask API key in an RPC URL for logging."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    return url
