"""
Staking delegation: concentrated validator choice and scheduled stake
operations.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    InstructionCategory,
    NormalizedInstruction,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import (
    SECONDS_PER_HOUR,
    Detector,
    build_signal,
    coefficient_of_variation,
    display_name,
    gaps,
)

CATEGORY = "behavioral"

# Stake program instruction index for DelegateStake (u32, little-endian).
DELEGATE_STAKE_DISCRIMINATOR = 2


@dataclass
class StakingConfig:
    min_delegations: int = 3
    # Concentrated when validators used are at most this many, or distinct/total at most the ratio.
    max_validators: int = 2
    max_validator_ratio: float = 0.34
    # Scheduled staking.
    timing_min_operations: int = 3
    timing_max_cv: float = 0.3
    timing_min_mean_seconds: float = SECONDS_PER_HOUR


def vote_account_of(ix: NormalizedInstruction) -> str | None:
    """Validator vote account of a delegate instruction; None for other stake instructions."""
    if ix.data is not None:
        if ix.data.get("type") != "delegate":
            return None
        info = ix.data.get("info") or {}
        return info.get("voteAccount") if isinstance(info, dict) else None
    raw = ix.raw_data
    if raw is None or len(raw) < 4 or int.from_bytes(raw[0:4], "little") != DELEGATE_STAKE_DISCRIMINATOR:
        return None
    # DelegateStake accounts are [stake, vote, clock, history, config, authority].
    if ix.accounts and len(ix.accounts) >= 2:
        return ix.accounts[1]
    return None


def _check_delegation_concentration(context: ScanContext, cfg: StakingConfig) -> RiskSignal | None:
    validators: Counter[str] = Counter()
    for ix in context.instructions:
        if ix.category != InstructionCategory.STAKE:
            continue
        vote = vote_account_of(ix)
        if vote:
            validators[vote] += 1
    total = sum(validators.values())
    if total < cfg.min_delegations:
        return None
    ratio = len(validators) / total
    if len(validators) > cfg.max_validators and ratio > cfg.max_validator_ratio:
        return None
    ranked = sorted(validators.items(), key=lambda vc: (-vc[1], vc[0]))
    return build_signal(
        category=CATEGORY,
        id="stake-delegation-concentration",
        name="Concentrated Stake Delegation",
        severity=Severity.MEDIUM,
        reason=f"{total} delegations went to only {len(validators)} validator(s).",
        impact="Repeated delegation to the same validators is a stable preference that links stake accounts to one owner.",
        mitigation="Delegate from separate wallets, or spread stake across validators with no other link to you.",
        confidence=0.7,
        evidence=[
            Evidence(
                description=f"{count} delegation(s) to {display_name(context, vote)}",
                type="validator",
                reference=vote,
                data={"address": vote, "delegations": count},
            )
            for vote, count in ranked
        ],
    )


def _check_stake_timing(context: ScanContext, cfg: StakingConfig) -> RiskSignal | None:
    times = sorted(
        {ix.signature: ix.block_time for ix in context.instructions
         if ix.category == InstructionCategory.STAKE and ix.block_time is not None}.values()
    )
    if len(times) < cfg.timing_min_operations:
        return None
    deltas = gaps(times)
    cv = coefficient_of_variation(deltas)
    if cv is None or cv >= cfg.timing_max_cv:
        return None
    mean_gap = sum(deltas) / len(deltas)
    if mean_gap <= cfg.timing_min_mean_seconds:
        return None
    hours = mean_gap / SECONDS_PER_HOUR
    return build_signal(
        category=CATEGORY,
        id="stake-timing-regular",
        name="Regular Staking Schedule",
        severity=Severity.LOW,
        reason=f"{len(times)} stake operations occur roughly every {hours:.1f} hours.",
        impact="A fixed staking schedule hints at automation and can link stake accounts run by the same script.",
        mitigation="Vary when stake operations are submitted.",
        confidence=0.6,
        evidence=[
            Evidence(
                description=f"{len(times)} stake transactions, mean gap {hours:.1f} hours ({cv * 100:.1f}% variation)",
                type="statistic",
                data={"operations": len(times), "meanGapSeconds": round(mean_gap, 2), "cv": round(cv, 4)},
            )
        ],
    )


class StakingDelegationDetector(Detector):
    detector_id = "staking-delegation"
    name = "Staking Delegation"
    category = CATEGORY

    def __init__(self, config: StakingConfig | None = None) -> None:
        self.config = config or StakingConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        signals: list[RiskSignal] = []
        for check in (_check_delegation_concentration, _check_stake_timing):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
