"""
Token account lifecycle: rent refunds from closed token accounts flowing to
the same destination, and short-lived token accounts.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
    TokenAccountEventType,
)
from solana_privacy_scanner.heuristics.base import Detector, display_name, short_address


@dataclass
class TokenLifecycleConfig:
    # Closed token accounts refunding rent to one destination.
    min_refund_accounts: int = 2
    # HIGH needs this many accounts from at least two owners other than the destination.
    high_refund_accounts: int = 4
    # Created and closed within this many seconds.
    short_lived_seconds: int = 3600
    min_short_lived: int = 2


class TokenLifecycleDetector(Detector):
    detector_id = "token-lifecycle"
    name = "Token Account Lifecycle"
    category = "linkability"

    def __init__(self, config: TokenLifecycleConfig | None = None) -> None:
        self.config = config or TokenLifecycleConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        signals: list[RiskSignal] = []
        for check in (self._check_refund_clustering, self._check_short_lived):
            result = check(context)
            if result is not None:
                signals.append(result)
        return signals

    def _check_refund_clustering(self, context: ScanContext) -> RiskSignal | None:
        cfg = self.config
        accounts: dict[str, set[str]] = defaultdict(set)
        owners: dict[str, set[str]] = defaultdict(set)
        refunded: dict[str, float] = defaultdict(float)
        for e in context.token_account_events:
            if e.type != TokenAccountEventType.CLOSE or not e.refund_destination:
                continue
            accounts[e.refund_destination].add(e.token_account)
            if e.owner != e.refund_destination:
                owners[e.refund_destination].add(e.owner)
            refunded[e.refund_destination] += e.rent_refund or 0.0
        clusters = sorted(
            ((dest, accts) for dest, accts in accounts.items() if len(accts) >= cfg.min_refund_accounts),
            key=lambda da: (-len(da[1]), da[0]),
        )
        if not clusters:
            return None
        high = any(
            len(accts) >= cfg.high_refund_accounts and len(owners[dest]) >= 2
            for dest, accts in clusters
        )
        return self.signal(
            id="rent-refund-clustering",
            name="Rent Refund Clustering",
            severity=Severity.HIGH if high else Severity.MEDIUM,
            reason=(
                f"Rent from {sum(len(a) for _, a in clusters)} closed token accounts was refunded to "
                f"{len(clusters)} shared destination(s)."
            ),
            impact="Closing many token accounts into one destination links all of those accounts (and their owners) to it.",
            mitigation="Send rent refunds back to each account's own owner, or leave short-lived accounts open.",
            confidence=0.8,
            evidence=[
                Evidence(
                    description=(
                        f"{len(accts)} closed token accounts refunded "
                        f"{round(refunded[dest], 9)} SOL to {display_name(context, dest)}"
                    ),
                    type="rent-refund",
                    reference=dest,
                    data={
                        "address": dest,
                        "tokenAccounts": sorted(accts),
                        "owners": sorted(owners[dest]),
                        "refundedSol": round(refunded[dest], 9),
                    },
                )
                for dest, accts in clusters
            ],
        )

    def _check_short_lived(self, context: ScanContext) -> RiskSignal | None:
        cfg = self.config
        created: dict[str, int] = {}
        closed: dict[str, int] = {}
        for e in context.token_account_events:
            if e.block_time is None:
                continue
            target = created if e.type == TokenAccountEventType.CREATE else closed
            target.setdefault(e.token_account, e.block_time)
        lifetimes = sorted(
            (acct, closed[acct] - created[acct])
            for acct in created
            if acct in closed and 0 <= closed[acct] - created[acct] < cfg.short_lived_seconds
        )
        if len(lifetimes) < cfg.min_short_lived:
            return None
        return self.signal(
            id="token-account-short-lived",
            name="Short-Lived Token Accounts",
            severity=Severity.LOW,
            reason=f"{len(lifetimes)} token accounts were created and closed within {cfg.short_lived_seconds // 60} minutes.",
            impact="Throwaway token accounts follow a recognisable pattern used by bots and privacy-seeking scripts alike.",
            mitigation="Avoid create-and-close cycles that make related accounts stand out.",
            confidence=0.6,
            evidence=[
                Evidence(
                    description=f"Token account {short_address(acct)} lived {secs} seconds",
                    type="token-account",
                    reference=acct,
                    data={"tokenAccount": acct, "lifetimeSeconds": secs},
                )
                for acct, secs in lifetimes
            ],
        )
