"""
Signer overlap heuristics: recurring multi-signer sets, repeated co-signers,
and authority hubs that co-sign with many accounts.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict
from dataclasses import dataclass

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
)
from solana_privacy_scanner.heuristics.base import Detector, build_signal, display_name, short_address

CATEGORY = "linkability"


@dataclass
class SignerOverlapConfig:
    # Identical signer sets (2+ signers) recurring at least this often.
    min_set_recurrence: int = 2
    medium_set_recurrence: int = 3
    high_set_recurrence: int = 5
    # Recurring set must act on at least this many distinct accounts.
    min_touched_accounts: int = 2

    # A single non-target signer present in many transactions.
    repeated_min_count: int = 3
    repeated_min_ratio: float = 0.3
    repeated_high_ratio: float = 0.7

    # Authority hub: one signer co-signing with many distinct others.
    hub_min_cosigners: int = 3
    hub_min_transactions: int = 10


def _touched_accounts(context: ScanContext) -> dict[str, set[str]]:
    """Accounts each transaction acts on: transfer parties, token accounts, PDAs."""
    touched: dict[str, set[str]] = defaultdict(set)
    for t in context.transfers:
        touched[t.signature].update((t.from_address, t.to_address))
    for e in context.token_account_events:
        touched[e.signature].add(e.token_account)
    for p in context.pda_interactions:
        touched[p.signature].add(p.pda)
    return touched


def _check_signer_set_reuse(context: ScanContext, cfg: SignerOverlapConfig) -> RiskSignal | None:
    touched = _touched_accounts(context)
    sets: dict[tuple[str, ...], list[str]] = defaultdict(list)
    for tx in context.transactions:
        key = tuple(sorted(set(tx.signers)))
        if len(key) >= 2:
            sets[key].append(tx.signature)

    found: list[tuple[tuple[str, ...], int, list[str]]] = []
    for key, sigs in sets.items():
        if len(sigs) < cfg.min_set_recurrence:
            continue
        accounts = set()
        for sig in sigs:
            accounts.update(touched.get(sig, ()))
        accounts.difference_update(key)
        if len(accounts) >= cfg.min_touched_accounts:
            found.append((key, len(sigs), sorted(accounts)))
    if not found:
        return None

    found.sort(key=lambda f: (-f[1], f[0]))
    top = found[0][1]
    if top >= cfg.high_set_recurrence:
        severity = Severity.HIGH
    elif top >= cfg.medium_set_recurrence:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW
    return build_signal(
        category=CATEGORY,
        id="signer-set-reuse",
        name="Recurring Signer Set",
        severity=severity,
        reason=(
            f"{len(found)} identical multi-signer set(s) recur across transactions touching "
            f"different accounts (up to {top} transactions for one set)."
        ),
        impact=(
            "The same group of signers acting on different accounts reveals shared control "
            "(multisig members, co-owned vaults, or one operator's keys)."
        ),
        mitigation="Use distinct signer keys per account or purpose; avoid reusing a multisig key set.",
        confidence=0.8,
        evidence=[
            Evidence(
                description=(
                    f"Signers {', '.join(short_address(s) for s in key)} signed {count} transactions "
                    f"touching {len(accounts)} accounts"
                ),
                type="signer-set",
                data={"signers": list(key), "transactions": count, "touchedAccounts": accounts},
            )
            for key, count, accounts in found
        ],
    )


def _check_repeated_signer(context: ScanContext, cfg: SignerOverlapConfig) -> RiskSignal | None:
    n = context.transaction_count
    counts: Counter[str] = Counter()
    for tx in context.transactions:
        for signer in set(tx.signers):
            if signer != context.target:
                counts[signer] += 1
    threshold = max(cfg.repeated_min_count, math.ceil(cfg.repeated_min_ratio * n))
    repeated = sorted(
        ((s, c) for s, c in counts.items() if c >= threshold),
        key=lambda sc: (-sc[1], sc[0]),
    )
    if not repeated:
        return None
    top = repeated[0][1]
    severity = Severity.HIGH if top > cfg.repeated_high_ratio * n else Severity.MEDIUM
    return build_signal(
        category=CATEGORY,
        id="signer-repeated",
        name="Repeated Co-Signer",
        severity=severity,
        reason=(
            f"{len(repeated)} signer(s) other than the target appear in at least {threshold} of "
            f"{n} transactions (most frequent: {top})."
        ),
        impact="A signer that keeps appearing alongside the target is a strong ownership or custody link.",
        mitigation="Rotate authority keys and avoid co-signing routine transactions with the same key.",
        confidence=0.75,
        evidence=[
            Evidence(
                description=f"{display_name(context, s)} signed {c} of {n} transactions",
                type="signer",
                reference=s,
                data={"address": s, "transactions": c},
            )
            for s, c in repeated
        ],
    )


def _check_authority_hub(context: ScanContext, cfg: SignerOverlapConfig) -> RiskSignal | None:
    if context.target_type != TargetType.PROGRAM and context.transaction_count <= cfg.hub_min_transactions:
        return None
    cosigners: dict[str, set[str]] = defaultdict(set)
    for tx in context.transactions:
        unique = set(tx.signers)
        for s in unique:
            cosigners[s].update(unique - {s})
    hubs = sorted(
        ((s, others) for s, others in cosigners.items() if len(others) >= cfg.hub_min_cosigners),
        key=lambda so: (-len(so[1]), so[0]),
    )
    if not hubs:
        return None
    return build_signal(
        category=CATEGORY,
        id="signer-authority-hub",
        name="Authority Hub Signer",
        severity=Severity.HIGH,
        reason=f"{len(hubs)} signer(s) co-sign with {cfg.hub_min_cosigners} or more distinct accounts.",
        impact="A hub signer ties every account it co-signs with into one cluster.",
        mitigation="Split authority across independent keys instead of one key co-signing for many accounts.",
        confidence=0.8,
        evidence=[
            Evidence(
                description=f"{display_name(context, s)} co-signed with {len(others)} distinct accounts",
                type="signer",
                reference=s,
                data={"address": s, "cosigners": sorted(others)},
            )
            for s, others in hubs
        ],
    )


class SignerOverlapDetector(Detector):
    detector_id = "signer-overlap"
    name = "Signer Overlap"
    category = CATEGORY

    def __init__(self, config: SignerOverlapConfig | None = None) -> None:
        self.config = config or SignerOverlapConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        signals: list[RiskSignal] = []
        for check in (_check_signer_set_reuse, _check_repeated_signer, _check_authority_hub):
            result = check(context, self.config)
            if result is not None:
                signals.append(result)
        return signals
