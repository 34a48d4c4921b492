"""
Data normalizer: raw chain snapshots to the read-only ScanContext.
"""

from solana_privacy_scanner.normalizer.normalizer import normalize
from solana_privacy_scanner.normalizer.parser import ParsedTransaction, parse_transaction

__all__ = ["ParsedTransaction", "normalize", "parse_transaction"]
