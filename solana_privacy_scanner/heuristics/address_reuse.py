"""
Address reuse: one wallet used for too much, for too long, with too few
distinct counterparties.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    InstructionCategory,
    LabelType,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
)
from solana_privacy_scanner.heuristics.base import (
    SECONDS_PER_DAY,
    Detector,
    build_signal,
    counterparty_of,
)
from solana_privacy_scanner.normalizer.programs import (
    METAPLEX_METADATA_PROGRAM_ID,
    NAME_SERVICE_PROGRAM_ID,
)

CATEGORY = "behavioral"

_LABEL_ACTIVITY = {
    LabelType.EXCHANGE: "Exchange",
    LabelType.BRIDGE: "Bridge",
    LabelType.PROTOCOL: "DeFi",
    LabelType.MARKETPLACE: "NFT",
    LabelType.GAMING: "Gaming",
    LabelType.MIXER: "Privacy",
    LabelType.PRIVACY: "Privacy",
}


@dataclass
class AddressReuseConfig:
    # Counterparty transfers needed before diversity is meaningful.
    min_transfers: int = 5
    # distinct counterparties / counterparty transfers at or below these ratios.
    low_diversity_ratio: float = 0.2
    moderate_diversity_ratio: float = 0.35
    # Distinct activity types on one address.
    high_activity_types: int = 4
    medium_activity_types: int = 3
    # Long-lived, heavily used address.
    long_term_days: int = 180
    long_term_min_transactions: int = 50


def activity_types(context: ScanContext) -> list[str]:
    """Sorted activity categories observed for the target."""
    found: set[str] = set()
    for ix in context.instructions:
        if ix.category == InstructionCategory.SWAP:
            found.add("DeFi")
        elif ix.category == InstructionCategory.STAKE:
            found.add("Staking")
        if ix.program_id == METAPLEX_METADATA_PROGRAM_ID:
            found.add("NFT")
        elif ix.program_id == NAME_SERVICE_PROGRAM_ID:
            found.add("Identity")
    for address, label in context.labels.items():
        activity = _LABEL_ACTIVITY.get(label.type)
        if activity is not None and address in context.counterparties | context.programs:
            found.add(activity)
    for t in context.transfers:
        other = counterparty_of(context, t)
        if other is not None and other not in context.labels:
            found.add("P2P")
            break
    return sorted(found)


def _check_low_diversity(context: ScanContext, cfg: AddressReuseConfig) -> RiskSignal | None:
    counts: Counter[str] = Counter()
    for t in context.transfers:
        other = counterparty_of(context, t)
        if other is not None:
            counts[other] += 1
    total = sum(counts.values())
    if total < cfg.min_transfers:
        return None
    ratio = len(counts) / total
    if ratio <= cfg.low_diversity_ratio:
        severity = Severity.MEDIUM
    elif ratio <= cfg.moderate_diversity_ratio:
        severity = Severity.LOW
    else:
        return None
    return build_signal(
        category=CATEGORY,
        id="address-low-diversity",
        name="Low Counterparty Diversity",
        severity=severity,
        reason=(
            f"{total} transfers went to or came from only {len(counts)} distinct counterparties "
            f"(diversity ratio {ratio:.2f})."
        ),
        impact="A small, stable set of counterparties is a recognisable fingerprint that survives address changes.",
        mitigation="Use separate wallets for recurring relationships so no single address shows the whole pattern.",
        confidence=0.7,
        evidence=[
            Evidence(
                description=f"{len(counts)} distinct counterparties across {total} transfers",
                type="statistic",
                data={"distinctCounterparties": len(counts), "transfers": total, "ratio": round(ratio, 4)},
            )
        ],
    )


def _check_activity_diversity(context: ScanContext, cfg: AddressReuseConfig) -> RiskSignal | None:
    if sum(1 for t in context.transfers if counterparty_of(context, t) is not None) < cfg.min_transfers:
        return None
    types = activity_types(context)
    if len(types) >= cfg.high_activity_types:
        severity = Severity.HIGH
    elif len(types) >= cfg.medium_activity_types:
        severity = Severity.MEDIUM
    else:
        return None
    return build_signal(
        category=CATEGORY,
        id="address-activity-diversity",
        name="Address Used for Many Activities",
        severity=severity,
        reason=f"This address is used for {len(types)} different activity types: {', '.join(types)}.",
        impact=(
            "Mixing unrelated activities on one address lets an observer who identifies any one of "
            "them attribute all the others."
        ),
        mitigation="Use a separate wallet per activity (trading, NFTs, payments, exchange transfers).",
        confidence=0.7,
        evidence=[
            Evidence(
                description=f"Activity types observed: {', '.join(types)}",
                type="statistic",
                data={"activityTypes": types},
            )
        ],
    )


def _check_long_term_usage(context: ScanContext, cfg: AddressReuseConfig) -> RiskSignal | None:
    earliest, latest = context.time_range.earliest, context.time_range.latest
    if earliest is None or latest is None:
        return None
    days = (latest - earliest) / SECONDS_PER_DAY
    if days <= cfg.long_term_days or context.transaction_count <= cfg.long_term_min_transactions:
        return None
    return build_signal(
        category=CATEGORY,
        id="address-long-term-usage",
        name="Long-Term Address Reuse",
        severity=Severity.MEDIUM,
        reason=f"{context.transaction_count} transactions over {int(days)} days on the same address.",
        impact="A long history on one address accumulates linkable data and widens the window for correlation.",
        mitigation="Rotate to fresh addresses periodically and avoid linking old and new wallets directly.",
        confidence=0.65,
        evidence=[
            Evidence(
                description=f"Active for {int(days)} days with {context.transaction_count} transactions",
                type="statistic",
                data={"days": int(days), "transactions": context.transaction_count},
            )
        ],
    )


class AddressReuseDetector(Detector):
    """Wallet scans only."""

    detector_id = "address-reuse"
    name = "Address Reuse"
    category = CATEGORY

    def __init__(self, config: AddressReuseConfig | None = None) -> None:
        self.config = config or AddressReuseConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        if context.target_type != TargetType.WALLET:
            return []
        signals: list[RiskSignal] = []
        for check in (_check_low_diversity, _check_activity_diversity, _check_long_term_usage):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
