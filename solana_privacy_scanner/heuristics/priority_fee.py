"""
Priority fee fingerprinting: a non-default compute unit price, or a compute
usage profile, repeated across transactions.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import Detector, build_signal

CATEGORY = "behavioral"


@dataclass
class PriorityFeeConfig:
    # Transactions setting a non-zero compute unit price.
    min_fee_transactions: int = 3
    # The most common price must appear this often and hold this share.
    min_recurrence: int = 3
    min_concentration: float = 0.5
    # Compute units consumed, bucketed.
    cu_min_transactions: int = 4
    cu_bucket_size: int = 10_000
    cu_min_concentration: float = 0.6
    cu_min_bucket_count: int = 4


def _check_consistent_fee(context: ScanContext, cfg: PriorityFeeConfig) -> RiskSignal | None:
    fees = [tx.priority_fee for tx in context.transactions if tx.priority_fee]
    if len(fees) < cfg.min_fee_transactions:
        return None
    value, count = sorted(Counter(fees).items(), key=lambda vc: (-vc[1], vc[0]))[0]
    share = count / len(fees)
    if count < cfg.min_recurrence or share < cfg.min_concentration:
        return None
    return build_signal(
        category=CATEGORY,
        id="priority-fee-consistent",
        name="Consistent Priority Fee",
        severity=Severity.MEDIUM,
        reason=(
            f"The same priority fee ({value} micro-lamports per compute unit) is used in {count} of "
            f"{len(fees)} transactions that set one."
        ),
        impact="A custom, unchanging priority fee fingerprints the bot or wallet configuration behind these transactions.",
        mitigation="Use your wallet's dynamic fee estimation instead of a fixed custom value.",
        confidence=0.7,
        evidence=[
            Evidence(
                description=f"{value} micro-lamports/CU in {count} of {len(fees)} fee-setting transactions",
                type="priority-fee",
                data={"microLamports": value, "transactions": count, "transactionsWithFee": len(fees)},
            )
        ],
    )


def _check_compute_units(context: ScanContext, cfg: PriorityFeeConfig) -> RiskSignal | None:
    units = [tx.compute_units_used for tx in context.transactions if tx.compute_units_used]
    if len(units) < cfg.cu_min_transactions:
        return None
    buckets = Counter(u // cfg.cu_bucket_size for u in units)
    bucket, count = sorted(buckets.items(), key=lambda bc: (-bc[1], bc[0]))[0]
    share = count / len(units)
    if count < cfg.cu_min_bucket_count or share < cfg.cu_min_concentration:
        return None
    low, high = bucket * cfg.cu_bucket_size, (bucket + 1) * cfg.cu_bucket_size
    return build_signal(
        category=CATEGORY,
        id="compute-unit-fingerprint",
        name="Compute Usage Fingerprint",
        severity=Severity.LOW,
        reason=f"{count} of {len(units)} transactions consumed between {low:,} and {high:,} compute units.",
        impact="Uniform compute usage suggests the same program path or script runs every time.",
        mitigation="Mix routine automated activity with ordinary wallet activity from separate addresses.",
        confidence=0.55,
        evidence=[
            Evidence(
                description=f"{count} transactions in the {low:,}-{high:,} compute unit range",
                type="compute-units",
                data={"rangeStart": low, "rangeEnd": high, "transactions": count},
            )
        ],
    )


class PriorityFeeDetector(Detector):
    detector_id = "priority-fee"
    name = "Priority Fee Fingerprinting"
    category = CATEGORY

    def __init__(self, config: PriorityFeeConfig | None = None) -> None:
        self.config = config or PriorityFeeConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        signals: list[RiskSignal] = []
        for check in (_check_consistent_fee, _check_compute_units):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
