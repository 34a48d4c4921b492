"""
Privacy heuristics package.

Each detector reads one immutable ScanContext and returns explainable
RiskSignals. Detectors are registered in a DetectorRegistry; the report
generator runs whatever the registry holds.
"""

from solana_privacy_scanner.heuristics.base import Detector, build_signal
from solana_privacy_scanner.heuristics.registry import DetectorRegistry, default_registry

__all__ = [
    "Detector",
    "DetectorRegistry",
    "build_signal",
    "default_registry",
]
