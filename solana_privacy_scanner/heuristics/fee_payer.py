"""
Fee payer heuristics.

A fee payer that covers transactions for several distinct accounts links
those accounts together publicly: anyone can group every account whose fees
came from the same payer. Relayers and "gasless" services are the common
source. The external fee payer check looks at the target's own signed
transactions and flags when someone else pays for them.
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
    TokenAccountEventType,
    TransactionMetadata,
)
from solana_privacy_scanner.heuristics.base import (
    Detector,
    display_name,
    ordered_unique,
    short_address,
    transfers_by_signature,
)


@dataclass
class FeePayerReuseConfig:
    # Distinct non-payer accounts one payer must cover to raise a signal.
    min_distinct_accounts: int = 2
    # At or above this the linkage is HIGH (treated as the top of the band).
    high_distinct_accounts: int = 3


def _principals(context: ScanContext, tx: TransactionMetadata, transfers: dict) -> list[str]:
    """
    Accounts acting in a transaction other than its fee payer, first-seen order.

    A transfer source only counts when it signed or closed an account in the
    transaction. Inferred legs (pool vaults in a swap) never sign.
    """
    closers = [
        e.owner
        for e in context.token_account_events
        if e.signature == tx.signature and e.type == TokenAccountEventType.CLOSE
    ]
    authorized = set(tx.signers) | set(closers)
    accounts = [t.from_address for t in transfers.get(tx.signature, []) if t.from_address in authorized]
    accounts.extend(tx.signers)
    accounts.extend(closers)
    return [a for a in ordered_unique(accounts) if a and a != tx.fee_payer]


class FeePayerReuseDetector(Detector):
    """One fee payer funds transactions for two or more distinct accounts."""

    detector_id = "fee-payer-reuse"
    name = "Fee Payer Reuse"
    category = "linkability"

    def __init__(self, config: FeePayerReuseConfig | None = None) -> None:
        self.config = config or FeePayerReuseConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        cfg = self.config
        transfers = transfers_by_signature(context)
        covered: dict[str, list[str]] = defaultdict(list)
        paid_for: dict[str, list[tuple[TransactionMetadata, list[str]]]] = defaultdict(list)
        for tx in context.transactions:
            principals = _principals(context, tx, transfers)
            if not principals:
                continue
            paid_for[tx.fee_payer].append((tx, principals))
            covered[tx.fee_payer] = ordered_unique(covered[tx.fee_payer] + principals)

        payers = sorted(p for p, accounts in covered.items() if len(accounts) >= cfg.min_distinct_accounts)
        if not payers:
            return []

        max_distinct = max(len(covered[p]) for p in payers)
        severity = Severity.HIGH if max_distinct >= cfg.high_distinct_accounts else Severity.MEDIUM
        evidence: list[Evidence] = []
        for payer in payers:
            for tx, principals in paid_for[payer]:
                evidence.append(
                    Evidence(
                        description=(
                            f"Transaction {short_address(tx.signature)} fee paid by "
                            f"{display_name(context, payer)} on behalf of "
                            f"{', '.join(short_address(a) for a in principals)}"
                        ),
                        type="transaction",
                        reference=tx.signature,
                        data={"feePayer": payer, "accounts": principals},
                    )
                )
        total_accounts = len({a for p in payers for a in covered[p]})
        return [
            self.signal(
                id="fee-payer-reuse",
                name="Shared Fee Payer",
                severity=severity,
                reason=(
                    f"{len(payers)} fee payer(s) paid network fees for {total_accounts} distinct "
                    f"accounts (up to {max_distinct} accounts for a single payer)."
                ),
                impact=(
                    "Every account whose fees come from the same payer can be grouped together. "
                    "This links wallets to one controller or service even when they never transact "
                    "with each other."
                ),
                mitigation=(
                    "Pay fees from each wallet's own balance, or use a fee payer that is not shared "
                    "with other accounts you control."
                ),
                confidence=0.9 if severity == Severity.HIGH else 0.8,
                evidence=evidence,
            )
        ]


@dataclass
class ExternalFeePayerConfig:
    # Fraction of the target's signed transactions paid by others that counts as "never self".
    never_self_ratio: float = 1.0


class ExternalFeePayerDetector(Detector):
    """Wallet scans: the target's own transactions have fees paid by other accounts."""

    detector_id = "fee-payer-external"
    name = "External Fee Payer"
    category = "linkability"

    def __init__(self, config: ExternalFeePayerConfig | None = None) -> None:
        self.config = config or ExternalFeePayerConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        if context.target_type != TargetType.WALLET:
            return []
        signed = [tx for tx in context.transactions if context.target in tx.signers]
        if not signed:
            return []
        external = [tx for tx in signed if tx.fee_payer != context.target]
        if not external:
            return []

        by_payer: dict[str, int] = defaultdict(int)
        for tx in external:
            by_payer[tx.fee_payer] += 1
        evidence = [
            Evidence(
                description=f"{display_name(context, payer)} paid fees for {count} of the wallet's transactions",
                type="fee-payer",
                reference=payer,
                data={"address": payer, "transactions": count},
            )
            for payer, count in sorted(by_payer.items(), key=lambda kv: (-kv[1], kv[0]))
        ]
        ratio = len(external) / len(signed)
        if ratio >= self.config.never_self_ratio:
            return [
                self.signal(
                    id="fee-payer-never-self",
                    name="Wallet Never Pays Its Own Fees",
                    severity=Severity.HIGH,
                    reason=(
                        f"All {len(signed)} transactions signed by this wallet had their fees paid "
                        f"by {len(by_payer)} other account(s)."
                    ),
                    impact=(
                        "The fee payer is the account that actually funds this wallet's activity, "
                        "which strongly suggests common ownership or a managed relationship."
                    ),
                    mitigation="Fund the wallet with SOL and pay fees from it directly.",
                    confidence=0.9,
                    evidence=evidence,
                )
            ]
        labelled = any(payer in context.labels for payer in by_payer)
        return [
            self.signal(
                id="fee-payer-external",
                name="External Fee Payer",
                severity=Severity.HIGH if labelled else Severity.MEDIUM,
                reason=(
                    f"{len(external)} of {len(signed)} transactions signed by this wallet had fees "
                    f"paid by {len(by_payer)} other account(s)."
                ),
                impact="Accounts paying this wallet's fees are publicly linked to it.",
                mitigation="Avoid relayers or sponsors that also pay fees for your other wallets.",
                confidence=0.8,
                evidence=evidence,
            )
        ]
