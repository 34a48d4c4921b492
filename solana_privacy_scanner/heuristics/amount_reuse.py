"""
Amount reuse: round SOL amounts and the same exact amount sent repeatedly.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
    Transfer,
)
from solana_privacy_scanner.heuristics.base import Detector, counterparty_of, short_address


@dataclass
class AmountReuseConfig:
    # Whole-SOL transfers of at least 1 SOL.
    min_round_transfers: int = 3
    min_round_share: float = 0.4
    # Exact amount repeated; dust below min_amount is ignored.
    min_amount: float = 0.001
    min_repeats: int = 3
    high_repeats: int = 5


def _amount_key(amount: float) -> float:
    return round(amount, 9)


def is_round_sol(amount: float) -> bool:
    return amount >= 1 and float(amount).is_integer()


class AmountReuseDetector(Detector):
    detector_id = "amount-reuse"
    name = "Amount Reuse"
    category = "behavioral"

    def __init__(self, config: AmountReuseConfig | None = None) -> None:
        self.config = config or AmountReuseConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        sol = [t for t in context.transfers if t.token is None and t.amount > 0]
        if not sol:
            return []
        signals: list[RiskSignal] = []
        round_numbers = self._check_round_numbers(sol)
        if round_numbers is not None:
            signals.append(round_numbers)
        reuse = self._check_reuse(context, sol)
        if reuse is not None:
            signals.append(reuse)
        return signals

    def _check_round_numbers(self, sol: list[Transfer]) -> RiskSignal | None:
        cfg = self.config
        rounds = [t for t in sol if is_round_sol(t.amount)]
        if len(rounds) < cfg.min_round_transfers or len(rounds) / len(sol) < cfg.min_round_share:
            return None
        amounts = sorted({_amount_key(t.amount) for t in rounds})
        return self.signal(
            id="amount-round-numbers",
            name="Round Number Transfers",
            severity=Severity.LOW,
            reason=f"{len(rounds)} of {len(sol)} SOL transfers are whole-SOL amounts.",
            impact="Round amounts are easier to match between a deposit and a withdrawal.",
            mitigation="Send slightly irregular amounts when moving funds between your own wallets.",
            confidence=0.5,
            evidence=[
                Evidence(
                    description=f"Round amounts: {', '.join(f'{a:g} SOL' for a in amounts)}",
                    type="statistic",
                    data={"amounts": amounts, "count": len(rounds)},
                )
            ],
        )

    def _counterparty(self, context: ScanContext, t: Transfer) -> str:
        if context.target_type == TargetType.WALLET:
            other = counterparty_of(context, t)
            if other is not None:
                return other
        return t.to_address

    def _check_reuse(self, context: ScanContext, sol: list[Transfer]) -> RiskSignal | None:
        cfg = self.config
        groups: dict[float, list[Transfer]] = defaultdict(list)
        for t in sol:
            if t.amount >= cfg.min_amount:
                groups[_amount_key(t.amount)].append(t)
        repeated = sorted(
            ((amount, ts) for amount, ts in groups.items() if len(ts) >= cfg.min_repeats),
            key=lambda at: (-len(at[1]), at[0]),
        )
        if not repeated:
            return None
        high = False
        evidence: list[Evidence] = []
        for amount, ts in repeated:
            parties = sorted({self._counterparty(context, t) for t in ts})
            if len(ts) >= cfg.high_repeats and len(parties) == 1:
                high = True
            evidence.append(
                Evidence(
                    description=(
                        f"{amount:g} SOL transferred {len(ts)} times"
                        + (f" with {short_address(parties[0])}" if len(parties) == 1 else f" across {len(parties)} counterparties")
                    ),
                    type="amount",
                    data={"amount": amount, "count": len(ts), "counterparties": parties},
                )
            )
        return self.signal(
            id="amount-reuse-pattern",
            name="Repeated Transfer Amount",
            severity=Severity.HIGH if high else Severity.MEDIUM,
            reason=f"{len(repeated)} exact amount(s) were transferred at least {cfg.min_repeats} times.",
            impact="Identical amounts link transfers to each other, like a salary, subscription, or a scripted payout.",
            mitigation="Vary amounts slightly between otherwise identical payments.",
            confidence=0.75,
            evidence=evidence,
        )
