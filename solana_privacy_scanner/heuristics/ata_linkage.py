"""
ATA linkage: one wallet creating (and paying rent for) associated token
accounts that belong to several different owners.
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
from solana_privacy_scanner.heuristics.base import Detector, display_name, iso_utc, max_window


@dataclass
class AtaLinkageConfig:
    # Distinct owners one funder creates token accounts for.
    min_owners: int = 2
    high_owners: int = 3
    # Creation burst: this many creations within the window.
    burst_min_creations: int = 3
    burst_window_seconds: int = 600


class AtaLinkageDetector(Detector):
    detector_id = "ata-linkage"
    name = "ATA Linkage"
    category = "linkability"

    def __init__(self, config: AtaLinkageConfig | None = None) -> None:
        self.config = config or AtaLinkageConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        creates = [e for e in context.token_account_events if e.type == TokenAccountEventType.CREATE]
        if not creates:
            return []
        signals: list[RiskSignal] = []
        linkage = self._check_creator_linkage(context, creates)
        if linkage is not None:
            signals.append(linkage)
        burst = self._check_funding_burst(creates)
        if burst is not None:
            signals.append(burst)
        return signals

    def _check_creator_linkage(self, context: ScanContext, creates: list) -> RiskSignal | None:
        cfg = self.config
        owners: dict[str, set[str]] = defaultdict(set)
        accounts: dict[str, set[str]] = defaultdict(set)
        for e in creates:
            funder = e.funder
            if not funder or funder == e.owner:
                continue
            owners[funder].add(e.owner)
            accounts[funder].add(e.token_account)
        linked = sorted(
            ((f, o) for f, o in owners.items() if len(o) >= cfg.min_owners),
            key=lambda fo: (-len(fo[1]), fo[0]),
        )
        if not linked:
            return None
        top = len(linked[0][1])
        return self.signal(
            id="ata-creator-linkage",
            name="Token Account Creator Linkage",
            severity=Severity.HIGH if top >= cfg.high_owners else Severity.MEDIUM,
            reason=(
                f"{len(linked)} wallet(s) created token accounts for multiple owners "
                f"(up to {top} distinct owners for one creator)."
            ),
            impact=(
                "The wallet that pays rent for a token account is recorded on-chain. Creating "
                "accounts for several owners links every one of them to the creator."
            ),
            mitigation="Let each wallet create its own token accounts, or fund creation from unrelated accounts.",
            confidence=0.85,
            evidence=[
                Evidence(
                    description=(
                        f"{display_name(context, funder)} created {len(accounts[funder])} token "
                        f"account(s) for {len(o)} owners"
                    ),
                    type="ata-creator",
                    reference=funder,
                    data={"address": funder, "owners": sorted(o), "tokenAccounts": sorted(accounts[funder])},
                )
                for funder, o in linked
            ],
        )

    def _check_funding_burst(self, creates: list) -> RiskSignal | None:
        cfg = self.config
        times = sorted(e.block_time for e in creates if e.block_time is not None)
        count, start, end = max_window(times, cfg.burst_window_seconds)
        if count < cfg.burst_min_creations:
            return None
        return self.signal(
            id="ata-funding-burst",
            name="Token Account Creation Burst",
            severity=Severity.MEDIUM,
            reason=f"{count} token accounts were created within {cfg.burst_window_seconds // 60} minutes.",
            impact="Batch creation of token accounts is a recognisable setup pattern for related wallets.",
            mitigation="Spread token account creation over time and across independent funding sources.",
            confidence=0.65,
            evidence=[
                Evidence(
                    description=f"{count} creations between {iso_utc(start)} and {iso_utc(end)}",
                    type="time-window",
                    data={"count": count, "start": start, "end": end},
                )
            ],
        )
