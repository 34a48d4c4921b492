"""
Identity metadata: on-chain names and NFT metadata attached to the wallet.
"""

from __future__ import annotations

from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import Detector, build_signal, ordered_unique, short_address
from solana_privacy_scanner.normalizer.programs import (
    METAPLEX_METADATA_PROGRAM_ID,
    NAME_SERVICE_PROGRAM_ID,
)

CATEGORY = "identity"


@dataclass
class IdentityMetadataConfig:
    name_service_programs: frozenset = frozenset({NAME_SERVICE_PROGRAM_ID})
    metadata_programs: frozenset = frozenset({METAPLEX_METADATA_PROGRAM_ID})


def _signatures_for(context: ScanContext, programs: frozenset) -> list[str]:
    return ordered_unique(ix.signature for ix in context.instructions if ix.program_id in programs)


def _transaction_evidence(signatures: list[str], what: str) -> list[Evidence]:
    return [
        Evidence(
            description=f"Transaction {short_address(sig)} interacts with {what}",
            type="transaction",
            reference=sig,
        )
        for sig in signatures
    ]


def _check_domain_name(context: ScanContext, cfg: IdentityMetadataConfig) -> RiskSignal | None:
    sigs = _signatures_for(context, cfg.name_service_programs)
    if not sigs:
        return None
    return build_signal(
        category=CATEGORY,
        id="domain-name-linkage",
        name="Domain Name Linkage",
        severity=Severity.HIGH,
        reason=f"{len(sigs)} transaction(s) interact with the Solana name service.",
        impact="A .sol name is a public, human-readable handle that ties this wallet to an identity.",
        mitigation="Keep named wallets separate from wallets you want to stay private.",
        confidence=0.85,
        evidence=_transaction_evidence(sigs, "the name service"),
    )


def _check_nft_metadata(context: ScanContext, cfg: IdentityMetadataConfig) -> RiskSignal | None:
    sigs = _signatures_for(context, cfg.metadata_programs)
    if not sigs:
        return None
    return build_signal(
        category=CATEGORY,
        id="nft-metadata-exposure",
        name="NFT Metadata Exposure",
        severity=Severity.MEDIUM,
        reason=f"{len(sigs)} transaction(s) create or update token metadata.",
        impact="NFT and token metadata (names, creators, URIs) can reveal collections, projects, or off-chain accounts tied to you.",
        mitigation="Mint and hold NFTs from a wallet that is not linked to your main activity.",
        confidence=0.6,
        evidence=_transaction_evidence(sigs, "Metaplex token metadata"),
    )


class IdentityMetadataDetector(Detector):
    detector_id = "identity-metadata"
    name = "Identity Metadata"
    category = CATEGORY

    def __init__(self, config: IdentityMetadataConfig | None = None) -> None:
        self.config = config or IdentityMetadataConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        signals: list[RiskSignal] = []
        for check in (_check_domain_name, _check_nft_metadata):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
