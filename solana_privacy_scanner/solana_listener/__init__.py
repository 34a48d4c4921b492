"""
Solana data collection package.

Fetches raw chain data over JSON-RPC (async, bounded, retried) and packages
it as raw snapshots for the normalizer. Failed fetches are recorded as
explicit absent values rather than raised.
"""

from solana_privacy_scanner.solana_listener.collectors import (
    collect_program_data,
    collect_transaction_data,
    collect_wallet_data,
)
from solana_privacy_scanner.solana_listener.models import (
    RawProgramData,
    RawScanData,
    RawTransaction,
    RawTransactionData,
    RawWalletData,
    SignatureInfo,
)
from solana_privacy_scanner.solana_listener.rpc_client import SolanaRpcClient

__all__ = [
    "RawProgramData",
    "RawScanData",
    "RawTransaction",
    "RawTransactionData",
    "RawWalletData",
    "SignatureInfo",
    "SolanaRpcClient",
    "collect_program_data",
    "collect_transaction_data",
    "collect_wallet_data",
]
