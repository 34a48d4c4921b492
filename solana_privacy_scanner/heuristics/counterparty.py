"""
Counterparty reuse: repeated transfers with the same address, and repeated
program-mediated interaction through the same PDA / vault.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
)
from solana_privacy_scanner.heuristics.base import Detector, counterparty_of, display_name


@dataclass
class CounterpartyReuseConfig:
    # Interactions with one counterparty: >= high -> HIGH, >= medium -> MEDIUM, >= low -> LOW.
    low_min: int = 2
    medium_min: int = 5
    high_min: int = 10


def band(count: int, cfg: CounterpartyReuseConfig) -> Severity | None:
    if count >= cfg.high_min:
        return Severity.HIGH
    if count >= cfg.medium_min:
        return Severity.MEDIUM
    if count >= cfg.low_min:
        return Severity.LOW
    return None


_CONFIDENCE = {Severity.HIGH: 0.85, Severity.MEDIUM: 0.75, Severity.LOW: 0.6}


class CounterpartyReuseDetector(Detector):
    """Wallet scans: transfers concentrated on the same counterparties."""

    detector_id = "counterparty-reuse"
    name = "Counterparty Reuse"
    category = "linkability"

    def __init__(self, config: CounterpartyReuseConfig | None = None) -> None:
        self.config = config or CounterpartyReuseConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        if context.target_type != TargetType.WALLET:
            return []
        signals = []
        for check in (self._check_transfers, self._check_pdas):
            result = check(context)
            if result is not None:
                signals.append(result)
        return signals

    def _check_transfers(self, context: ScanContext) -> RiskSignal | None:
        sent: Counter[str] = Counter()
        received: Counter[str] = Counter()
        for t in context.transfers:
            other = counterparty_of(context, t)
            if other is None or other == context.target:
                continue
            if t.from_address == context.target:
                sent[other] += 1
            else:
                received[other] += 1
        totals = sent + received
        reused = sorted(
            ((cp, n) for cp, n in totals.items() if n >= self.config.low_min),
            key=lambda kv: (-kv[1], kv[0]),
        )
        if not reused:
            return None
        severity = band(reused[0][1], self.config)
        total_transfers = sum(totals.values())
        return self.signal(
            id="counterparty-reuse",
            name="Repeated Counterparty",
            severity=severity,
            reason=(
                f"{len(reused)} counterparty address(es) appear in repeated transfers; the most "
                f"frequent accounts for {reused[0][1]} of {total_transfers} transfers."
            ),
            impact=(
                "Repeated transfers with the same address form a stable, visible relationship "
                "that clustering tools use to link wallets to one owner or business."
            ),
            mitigation="Use fresh receiving addresses per relationship and avoid funnelling funds through one counterparty.",
            confidence=_CONFIDENCE[severity],
            evidence=[
                Evidence(
                    description=(
                        f"{n} transfers with {display_name(context, cp)} "
                        f"({sent[cp]} sent, {received[cp]} received)"
                    ),
                    type="counterparty",
                    reference=cp,
                    data={"address": cp, "transfers": n, "sent": sent[cp], "received": received[cp]},
                )
                for cp, n in reused
            ],
        )

    def _check_pdas(self, context: ScanContext) -> RiskSignal | None:
        sigs: dict[str, set[str]] = defaultdict(set)
        programs: dict[str, str] = {}
        for p in context.pda_interactions:
            sigs[p.pda].add(p.signature)
            programs.setdefault(p.pda, p.program_id)
        reused = sorted(
            ((pda, len(s)) for pda, s in sigs.items() if len(s) >= self.config.low_min),
            key=lambda kv: (-kv[1], kv[0]),
        )
        if not reused:
            return None
        severity = band(reused[0][1], self.config)
        return self.signal(
            id="pda-reuse",
            name="Repeated Program Account",
            severity=severity,
            reason=f"{len(reused)} program-derived account(s) are reused across multiple transactions.",
            impact="Repeatedly using the same vault or position account links those transactions to one user.",
            mitigation="Close and recreate positions or use separate wallets for repeated protocol interactions.",
            confidence=_CONFIDENCE[severity],
            evidence=[
                Evidence(
                    description=(
                        f"PDA {display_name(context, pda)} of program "
                        f"{display_name(context, programs[pda])} used in {n} transactions"
                    ),
                    type="pda",
                    reference=pda,
                    data={"address": pda, "programId": programs[pda], "transactions": n},
                )
                for pda, n in reused
            ],
        )
