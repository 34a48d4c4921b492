"""
Instruction fingerprinting: the same ordered (program, category) sequence
repeated across transactions identifies the wallet software, bot, or script
that built them.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import Detector, build_signal, display_name
from solana_privacy_scanner.normalizer.programs import CORE_PROGRAM_IDS

CATEGORY = "behavioral"

Sequence = tuple[tuple[str, str], ...]


@dataclass
class InstructionFingerprintConfig:
    min_transactions: int = 3
    # A sequence (2+ instructions) seen in at least this many transactions.
    min_recurrence: int = 3
    # MEDIUM when the top sequence reaches both the count and the share.
    medium_recurrence: int = 5
    medium_ratio: float = 0.5
    # Program usage profile: non-core programs used across transactions.
    profile_min_programs: int = 2
    profile_min_transactions: int = 3


def transaction_sequences(context: ScanContext) -> dict[str, Sequence]:
    """Ordered (program_id, category) sequence of top-level instructions per transaction."""
    seqs: dict[str, list[tuple[str, str]]] = defaultdict(list)
    for ix in context.instructions:
        if ix.is_inner:
            continue
        seqs[ix.signature].append((ix.program_id, ix.category.value))
    return {sig: tuple(s) for sig, s in seqs.items()}


def _describe(context: ScanContext, seq: Sequence) -> str:
    return " -> ".join(f"{display_name(context, pid)}:{cat}" for pid, cat in seq)


def _check_sequence_pattern(context: ScanContext, cfg: InstructionFingerprintConfig) -> RiskSignal | None:
    n = context.transaction_count
    counts: Counter[Sequence] = Counter(
        seq for seq in transaction_sequences(context).values() if len(seq) >= 2
    )
    repeated = sorted(
        ((seq, c) for seq, c in counts.items() if c >= cfg.min_recurrence),
        key=lambda sc: (-sc[1], sc[0]),
    )
    if not repeated:
        return None
    top = repeated[0][1]
    if top >= cfg.medium_recurrence and top / n >= cfg.medium_ratio:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW
    return build_signal(
        category=CATEGORY,
        id="instruction-sequence-pattern",
        name="Repeated Instruction Sequence",
        severity=severity,
        reason=(
            f"{len(repeated)} instruction sequence(s) repeat identically; the most common appears "
            f"in {top} of {n} transactions."
        ),
        impact=(
            "Identical instruction layouts fingerprint the wallet, bot, or script that built the "
            "transactions and let them be linked across addresses."
        ),
        mitigation="Vary transaction construction (instruction order, compute budget settings) or use common wallet defaults.",
        confidence=0.7,
        evidence=[
            Evidence(
                description=f"Sequence {_describe(context, seq)} used in {c} transactions",
                type="instruction-sequence",
                data={"sequence": [f"{pid}:{cat}" for pid, cat in seq], "transactions": c},
            )
            for seq, c in repeated
        ],
    )


def _check_program_profile(context: ScanContext, cfg: InstructionFingerprintConfig) -> RiskSignal | None:
    usage: dict[str, set[str]] = defaultdict(set)
    for ix in context.instructions:
        if ix.program_id and ix.program_id not in CORE_PROGRAM_IDS:
            usage[ix.program_id].add(ix.signature)
    if len(usage) < cfg.profile_min_programs:
        return None
    tx_count = len(set().union(*usage.values()))
    if tx_count < cfg.profile_min_transactions:
        return None
    ranked = sorted(usage.items(), key=lambda kv: (-len(kv[1]), kv[0]))
    return build_signal(
        category=CATEGORY,
        id="program-usage-profile",
        name="Distinctive Program Usage Profile",
        severity=Severity.LOW,
        reason=f"{len(usage)} non-core programs used across {tx_count} transactions.",
        impact="The particular mix of programs a wallet uses is a behavioural fingerprint.",
        mitigation="Separate activity on different protocols into different wallets if the profile is sensitive.",
        confidence=0.6,
        evidence=[
            Evidence(
                description=f"{display_name(context, pid)} used in {len(sigs)} transactions",
                type="program",
                reference=pid,
                data={"programId": pid, "transactions": len(sigs)},
            )
            for pid, sigs in ranked
        ],
    )


class InstructionFingerprintDetector(Detector):
    detector_id = "instruction-fingerprint"
    name = "Instruction Fingerprinting"
    category = CATEGORY

    def __init__(self, config: InstructionFingerprintConfig | None = None) -> None:
        self.config = config or InstructionFingerprintConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        if context.transaction_count < self.config.min_transactions:
            return []
        signals: list[RiskSignal] = []
        for check in (_check_sequence_pattern, _check_program_profile):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
