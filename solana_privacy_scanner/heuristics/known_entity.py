"""
Known entity interaction: counterparties and programs with curated labels.

Exchanges hold KYC records, so direct interaction is the strongest identity
link; bridges link activity across chains; other labelled protocols and
programs only reveal behaviour. Core runtime programs (System, Token, ...)
are used by everyone and never counted.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    Label,
    LabelType,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import Detector, short_address
from solana_privacy_scanner.normalizer.programs import CORE_PROGRAM_IDS


@dataclass
class KnownEntityConfig:
    exchange_confidence: float = 0.95
    bridge_confidence: float = 0.85
    other_confidence: float = 0.75
    # One entity holding more than this share of transactions, with min interactions.
    frequent_min_ratio: float = 0.3
    frequent_min_interactions: int = 5


def _interaction_counts(context: ScanContext) -> Counter[str]:
    """Interactions with each labelled non-core address: transfers plus instructions."""
    counts: Counter[str] = Counter()
    for t in context.transfers:
        for address in (t.from_address, t.to_address):
            if address != context.target and address in context.labels:
                counts[address] += 1
    for ix in context.instructions:
        if ix.program_id in context.labels:
            counts[ix.program_id] += 1
    for address in list(counts):
        if address in CORE_PROGRAM_IDS:
            del counts[address]
    return counts


def _entity_evidence(label: Label, count: int) -> Evidence:
    return Evidence(
        description=f"{count} interaction(s) with {label.name} ({label.type.value}, {short_address(label.address)})",
        type="label",
        reference=label.address,
        data={
            "address": label.address,
            "name": label.name,
            "labelType": label.type.value,
            "interactions": count,
        },
    )


class KnownEntityDetector(Detector):
    detector_id = "known-entity"
    name = "Known Entity Interaction"
    category = "identity"

    def __init__(self, config: KnownEntityConfig | None = None) -> None:
        self.config = config or KnownEntityConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        cfg = self.config
        counts = _interaction_counts(context)
        if not counts:
            return []
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
        exchanges = [(context.labels[a], c) for a, c in ranked if context.labels[a].type == LabelType.EXCHANGE]
        bridges = [(context.labels[a], c) for a, c in ranked if context.labels[a].type == LabelType.BRIDGE]
        others = [
            (context.labels[a], c)
            for a, c in ranked
            if context.labels[a].type not in (LabelType.EXCHANGE, LabelType.BRIDGE)
        ]

        signals: list[RiskSignal] = []
        if exchanges:
            signals.append(
                self.signal(
                    id="known-entity-exchange",
                    name="Interaction with Centralized Exchange",
                    severity=Severity.HIGH,
                    reason=f"Interacted with {len(exchanges)} known exchange address(es).",
                    impact=(
                        "Exchanges collect identity documents. A deposit or withdrawal links this "
                        "address to a KYC-verified account that can be disclosed on request."
                    ),
                    mitigation=(
                        "Route exchange deposits and withdrawals through a separate wallet that is "
                        "never used for other activity."
                    ),
                    confidence=cfg.exchange_confidence,
                    evidence=[_entity_evidence(label, c) for label, c in exchanges],
                )
            )
        if bridges:
            signals.append(
                self.signal(
                    id="known-entity-bridge",
                    name="Interaction with Cross-Chain Bridge",
                    severity=Severity.MEDIUM,
                    reason=f"Interacted with {len(bridges)} known bridge address(es).",
                    impact="Bridge transfers can be matched by amount and time to activity on other chains.",
                    mitigation="Vary amounts and timing when bridging, and use fresh addresses on the destination chain.",
                    confidence=cfg.bridge_confidence,
                    evidence=[_entity_evidence(label, c) for label, c in bridges],
                )
            )
        if others:
            signals.append(
                self.signal(
                    id="known-entity-other",
                    name="Interaction with Known Protocols",
                    severity=Severity.LOW,
                    reason=f"Interacted with {len(others)} labelled protocol or program address(es).",
                    impact="Protocol usage builds a behavioural profile that helps distinguish this wallet.",
                    mitigation="Spread protocol usage across separate wallets if the profile itself is sensitive.",
                    confidence=cfg.other_confidence,
                    evidence=[_entity_evidence(label, c) for label, c in others],
                )
            )

        n = context.transaction_count
        frequent = [
            (context.labels[a], c)
            for a, c in ranked
            if c >= cfg.frequent_min_interactions and c / n > cfg.frequent_min_ratio
        ]
        if frequent:
            signals.append(
                self.signal(
                    id="known-entity-frequent",
                    name="Concentrated Known Entity Usage",
                    severity=Severity.MEDIUM,
                    reason=(
                        f"{len(frequent)} known entit(ies) account for more than "
                        f"{int(cfg.frequent_min_ratio * 100)}% of this target's transactions."
                    ),
                    impact="Heavy reliance on one entity makes the target's activity easy to find in that entity's records.",
                    mitigation="Diversify the services you use, or use a dedicated wallet per service.",
                    confidence=0.8,
                    evidence=[_entity_evidence(label, c) for label, c in frequent],
                )
            )
        return signals
