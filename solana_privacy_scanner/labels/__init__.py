"""
Known-address labels: lookup contract and the bundled static provider.
"""

from solana_privacy_scanner.labels.provider import LabelProvider, StaticLabelProvider

__all__ = ["LabelProvider", "StaticLabelProvider"]
