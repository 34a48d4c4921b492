"""
Ordered detector registry.

The report generator only iterates a registry; it never names individual
detectors. Registration order is the tiebreak for canonical signal ordering,
so default_registry() fixes the battery order.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from solana_privacy_scanner.heuristics.address_reuse import AddressReuseDetector
from solana_privacy_scanner.heuristics.amount_reuse import AmountReuseDetector
from solana_privacy_scanner.heuristics.ata_linkage import AtaLinkageDetector
from solana_privacy_scanner.heuristics.balance_traceability import BalanceTraceabilityDetector
from solana_privacy_scanner.heuristics.base import Detector
from solana_privacy_scanner.heuristics.counterparty import CounterpartyReuseDetector
from solana_privacy_scanner.heuristics.fee_payer import (
    ExternalFeePayerDetector,
    FeePayerReuseDetector,
)
from solana_privacy_scanner.heuristics.identity_metadata import IdentityMetadataDetector
from solana_privacy_scanner.heuristics.instruction_fingerprint import InstructionFingerprintDetector
from solana_privacy_scanner.heuristics.known_entity import KnownEntityDetector
from solana_privacy_scanner.heuristics.memo import MemoExposureDetector
from solana_privacy_scanner.heuristics.priority_fee import PriorityFeeDetector
from solana_privacy_scanner.heuristics.signer import SignerOverlapDetector
from solana_privacy_scanner.heuristics.staking import StakingDelegationDetector
from solana_privacy_scanner.heuristics.timing import TimingDetector
from solana_privacy_scanner.heuristics.token_lifecycle import TokenLifecycleDetector


class DetectorRegistry:
    def __init__(self, detectors: Iterable[Detector] = ()) -> None:
        self._detectors: list[Detector] = []
        for detector in detectors:
            self.register(detector)

    def register(self, detector: Detector) -> Detector:
        """Append a detector. Raises ValueError on a duplicate detector_id."""
        if not detector.detector_id:
            raise ValueError(f"{type(detector).__name__} has no detector_id")
        if detector.detector_id in self.ids():
            raise ValueError(f"Detector already registered: {detector.detector_id}")
        self._detectors.append(detector)
        return detector

    def ids(self) -> list[str]:
        return [d.detector_id for d in self._detectors]

    def __iter__(self) -> Iterator[Detector]:
        return iter(list(self._detectors))

    def __len__(self) -> int:
        return len(self._detectors)

    def __repr__(self) -> str:
        return f"DetectorRegistry({self.ids()!r})"


def default_registry() -> DetectorRegistry:
    """The full detector battery with default thresholds."""
    return DetectorRegistry([
        FeePayerReuseDetector(),
        ExternalFeePayerDetector(),
        SignerOverlapDetector(),
        MemoExposureDetector(),
        KnownEntityDetector(),
        CounterpartyReuseDetector(),
        AddressReuseDetector(),
        AtaLinkageDetector(),
        InstructionFingerprintDetector(),
        TokenLifecycleDetector(),
        PriorityFeeDetector(),
        StakingDelegationDetector(),
        TimingDetector(),
        AmountReuseDetector(),
        BalanceTraceabilityDetector(),
        IdentityMetadataDetector(),
    ])
