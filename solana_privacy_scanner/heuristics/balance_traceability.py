"""
Balance traceability: funds that can be followed through a wallet.

Two patterns make a wallet's balance easy to track. The same amount received
and later sent again (a pass-through) lets an observer connect the inbound and
outbound transfer. Consecutive transfers of nearly the same amount within an
hour read as one payment split or forwarded in pieces.
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
from solana_privacy_scanner.heuristics.base import Detector, short_address


@dataclass
class BalanceTraceabilityConfig:
    min_transfers: int = 2
    # Amounts are compared at this precision; dust below min_amount is ignored.
    amount_decimals: int = 6
    min_amount: float = 0.001
    # Matching receive/send amounts; 3 or more pairs is HIGH on their own.
    high_pairs: int = 3
    # With sequential transfers present, this many pairs is enough for HIGH.
    high_pairs_with_sequence: int = 2
    sequential_window_sec: int = 3600
    sequential_tolerance: float = 0.1


def _asset(t: Transfer) -> str:
    return t.token or "SOL"


def _format_amount(amount: float, asset: str) -> str:
    return f"{amount:g} {asset if asset == 'SOL' else short_address(asset)}"


class BalanceTraceabilityDetector(Detector):
    """Pass-through amounts and similar back-to-back transfers on a wallet."""

    detector_id = "balance-traceability"
    name = "Balance Traceability"
    category = "traceability"

    def __init__(self, config: BalanceTraceabilityConfig | None = None) -> None:
        self.config = config or BalanceTraceabilityConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        cfg = self.config
        if context.target_type != TargetType.WALLET:
            return []
        own = [
            t
            for t in context.transfers
            if context.target in (t.from_address, t.to_address)
            and t.from_address != t.to_address
            and t.amount >= cfg.min_amount
        ]
        if len(own) < cfg.min_transfers:
            return []

        pairs = self._matching_pairs(context, own)
        sequences = self._sequential(own)
        if not pairs and not sequences:
            return []

        evidence: list[Evidence] = []
        for (asset, amount), (received, sent) in pairs:
            evidence.append(
                Evidence(
                    description=(
                        f"{_format_amount(amount, asset)} received {received} time(s) "
                        f"and sent {sent} time(s)"
                    ),
                    type="amount",
                    data={"asset": asset, "amount": amount, "received": received, "sent": sent},
                )
            )
        for first, second in sequences:
            evidence.append(
                Evidence(
                    description=(
                        f"Transfers {short_address(first.signature)} and {short_address(second.signature)} "
                        f"moved {_format_amount(first.amount, _asset(first))} and "
                        f"{_format_amount(second.amount, _asset(second))} "
                        f"{second.block_time - first.block_time}s apart"
                    ),
                    type="transaction",
                    reference=second.signature,
                    data={
                        "signatures": [first.signature, second.signature],
                        "amounts": [first.amount, second.amount],
                        "gapSeconds": second.block_time - first.block_time,
                    },
                )
            )

        high = len(pairs) >= cfg.high_pairs or (
            bool(sequences) and len(pairs) >= cfg.high_pairs_with_sequence
        )
        parts = []
        if pairs:
            parts.append(f"{len(pairs)} amount(s) were both received and sent")
        if sequences:
            parts.append(f"{len(sequences)} pair(s) of similar transfers happened within an hour")
        return [
            self.signal(
                id="balance-traceability",
                name="Balance Traceability",
                severity=Severity.HIGH if high else Severity.MEDIUM,
                reason="; ".join(parts) + ".",
                impact=(
                    "Matching amounts let observers follow funds into and out of this wallet, "
                    "linking its transactions and revealing where the money came from and went."
                ),
                mitigation=(
                    "Split large transfers into different amounts, add delays between related "
                    "transfers, or use a privacy protocol that hides amounts."
                ),
                confidence=0.7,
                evidence=evidence,
            )
        ]

    def _matching_pairs(
        self, context: ScanContext, own: list[Transfer]
    ) -> list[tuple[tuple[str, float], tuple[int, int]]]:
        cfg = self.config
        received: dict[tuple[str, float], int] = defaultdict(int)
        sent: dict[tuple[str, float], int] = defaultdict(int)
        for t in own:
            key = (_asset(t), round(t.amount, cfg.amount_decimals))
            if t.to_address == context.target:
                received[key] += 1
            else:
                sent[key] += 1
        return [((asset, amount), (received[(asset, amount)], sent[(asset, amount)]))
                for asset, amount in sorted(set(received) & set(sent))]

    def _sequential(self, own: list[Transfer]) -> list[tuple[Transfer, Transfer]]:
        """Back-to-back transfers of one asset within the window and tolerance."""
        cfg = self.config
        by_asset: dict[str, list[Transfer]] = defaultdict(list)
        for t in own:
            if t.block_time is not None:
                by_asset[_asset(t)].append(t)
        out: list[tuple[Transfer, Transfer]] = []
        for asset in sorted(by_asset):
            timeline = sorted(by_asset[asset], key=lambda t: t.block_time)
            for first, second in zip(timeline, timeline[1:]):
                if second.block_time - first.block_time >= cfg.sequential_window_sec:
                    continue
                if abs(second.amount - first.amount) < first.amount * cfg.sequential_tolerance:
                    out.append((first, second))
        return out
