"""
Data model for privacy analysis: scan context, risk signals, and the report.

The ScanContext is the normalized, read-only snapshot every heuristic reads.
RiskSignal / Evidence are detector output. PrivacyReport is the only
long-lived artifact; its to_dict() is the external JSON contract and uses
camelCase keys that downstream formatters parse structurally.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

REPORT_VERSION = "1.0.0"


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


# Ascending; index is the rank.
SEVERITY_ORDER = (Severity.LOW, Severity.MEDIUM, Severity.HIGH)


def severity_rank(severity: Severity) -> int:
    return SEVERITY_ORDER.index(severity)


class TargetType(str, Enum):
    WALLET = "wallet"
    TRANSACTION = "transaction"
    PROGRAM = "program"


class InstructionCategory(str, Enum):
    TRANSFER = "transfer"
    SWAP = "swap"
    STAKE = "stake"
    VOTE = "vote"
    PROGRAM_INTERACTION = "program_interaction"
    TOKEN_OPERATION = "token_operation"
    UNKNOWN = "unknown"


class TokenAccountEventType(str, Enum):
    CREATE = "create"
    CLOSE = "close"


class LabelType(str, Enum):
    EXCHANGE = "exchange"
    BRIDGE = "bridge"
    PROTOCOL = "protocol"
    PROGRAM = "program"
    TOKEN = "token"
    MEV = "mev"
    MIXER = "mixer"
    MARKETPLACE = "marketplace"
    FEE_PAYER = "fee-payer"
    VALIDATOR = "validator"
    PRIVACY = "privacy"
    GAMING = "gaming"
    ORACLE = "oracle"
    WALLET = "wallet"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Label:
    """Curated metadata identifying a known entity behind an address."""

    address: str
    name: str
    type: LabelType
    description: str | None = None
    related_addresses: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "address": self.address,
            "name": self.name,
            "type": self.type.value,
        }
        if self.description is not None:
            out["description"] = self.description
        if self.related_addresses is not None:
            out["relatedAddresses"] = list(self.related_addresses)
        return out

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "Label":
        """Build from a label-file / report entry; raises KeyError or ValueError if malformed."""
        related = item.get("relatedAddresses")
        return cls(
            address=str(item["address"]),
            name=str(item["name"]),
            type=LabelType(item["type"]),
            description=item.get("description"),
            related_addresses=tuple(related) if related is not None else None,
        )


# ---------------------------------------------------------------------------
# Scan context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transfer:
    """A normalized value movement (native SOL or SPL token)."""

    from_address: str
    to_address: str
    amount: float
    """SOL for native transfers, UI amount for tokens."""
    signature: str
    block_time: int | None
    token: str | None = None
    """Mint address; None for native SOL."""


@dataclass(frozen=True)
class NormalizedInstruction:
    program_id: str
    category: InstructionCategory
    signature: str
    block_time: int | None
    accounts: tuple[str, ...] | None = None
    data: dict[str, Any] | None = None
    """jsonParsed payload ({"type": ..., "info": {...}}) when the RPC decoded it."""
    raw_data: bytes | None = None
    """Decoded instruction bytes when the payload was not jsonParsed."""
    is_inner: bool = False
    """Invoked by another program (CPI) rather than listed in the message."""


@dataclass(frozen=True)
class TransactionMetadata:
    signature: str
    block_time: int | None
    fee_payer: str
    signers: tuple[str, ...]
    memo: str | None = None
    priority_fee: int | None = None
    """Compute unit price in micro-lamports from SetComputeUnitPrice."""
    compute_units_used: int | None = None
    fee: int | None = None
    """Network fee in lamports."""


@dataclass(frozen=True)
class TokenAccountEvent:
    type: TokenAccountEventType
    token_account: str
    owner: str
    signature: str
    block_time: int | None
    mint: str | None = None
    rent_refund: float | None = None
    """SOL returned when the account is closed."""
    refund_destination: str | None = None
    """Wallet receiving the rent refund on close."""
    funder: str | None = None
    """Account paying rent on create (ATA source, or fee payer)."""


@dataclass(frozen=True)
class PDAInteraction:
    pda: str
    program_id: str
    signature: str
    seeds: tuple[str, ...] | None = None


@dataclass(frozen=True)
class TokenAccountBalance:
    mint: str
    address: str
    balance: float


@dataclass(frozen=True)
class TimeRange:
    earliest: int | None = None
    latest: int | None = None


@dataclass(frozen=True)
class ScanContext:
    """
    Normalized, read-only snapshot of chain data for one scan.

    Built once by the normalizer and never mutated; collections are tuples and
    derived address sets are frozensets. Every field has an empty default so a
    context with zero transactions is always well-formed.
    """

    target: str
    target_type: TargetType
    transfers: tuple[Transfer, ...] = ()
    instructions: tuple[NormalizedInstruction, ...] = ()
    transactions: tuple[TransactionMetadata, ...] = ()
    token_account_events: tuple[TokenAccountEvent, ...] = ()
    pda_interactions: tuple[PDAInteraction, ...] = ()
    counterparties: frozenset[str] = frozenset()
    fee_payers: frozenset[str] = frozenset()
    signers: frozenset[str] = frozenset()
    programs: frozenset[str] = frozenset()
    labels: Mapping[str, Label] = field(default_factory=lambda: MappingProxyType({}))
    """Point-in-time label snapshot taken once per scan; read-only."""
    token_accounts: tuple[TokenAccountBalance, ...] = ()
    time_range: TimeRange = field(default_factory=TimeRange)
    transaction_count: int = 0
    """Successfully parsed transactions; never counts failed fetches."""


# ---------------------------------------------------------------------------
# Detector output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Evidence:
    """Human-readable evidence for a signal, optionally with structured data."""

    description: str
    type: str | None = None
    reference: str | None = None
    """Signature or address the evidence points at."""
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"description": self.description}
        if self.type is not None:
            out["type"] = self.type
        if self.reference is not None:
            out["reference"] = self.reference
        if self.data is not None:
            out["data"] = self.data
        return out

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "Evidence":
        return cls(
            description=item["description"],
            type=item.get("type"),
            reference=item.get("reference"),
            data=item.get("data"),
        )


@dataclass(frozen=True)
class RiskSignal:
    """
    Single explainable privacy finding.

    Tied to a detector rule (id) and includes the reason, the impact, and the
    evidence that triggered it, so users can verify and act on it.
    """

    id: str
    name: str
    severity: Severity
    reason: str
    impact: str
    mitigation: str
    confidence: float
    evidence: tuple[Evidence, ...] = ()
    category: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.value,
        }
        if self.category is not None:
            out["category"] = self.category
        out["reason"] = self.reason
        out["impact"] = self.impact
        out["evidence"] = [e.to_dict() for e in self.evidence]
        out["mitigation"] = self.mitigation
        out["confidence"] = self.confidence
        return out

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "RiskSignal":
        return cls(
            id=item["id"],
            name=item["name"],
            severity=Severity(item["severity"]),
            category=item.get("category"),
            reason=item["reason"],
            impact=item["impact"],
            evidence=tuple(Evidence.from_dict(e) for e in item.get("evidence") or []),
            mitigation=item["mitigation"],
            confidence=item["confidence"],
        )


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------


@dataclass
class ReportSummary:
    total_signals: int
    high_risk_signals: int
    medium_risk_signals: int
    low_risk_signals: int
    transactions_analyzed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSignals": self.total_signals,
            "highRiskSignals": self.high_risk_signals,
            "mediumRiskSignals": self.medium_risk_signals,
            "lowRiskSignals": self.low_risk_signals,
            "transactionsAnalyzed": self.transactions_analyzed,
        }

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "ReportSummary":
        return cls(
            total_signals=item["totalSignals"],
            high_risk_signals=item["highRiskSignals"],
            medium_risk_signals=item["mediumRiskSignals"],
            low_risk_signals=item["lowRiskSignals"],
            transactions_analyzed=item["transactionsAnalyzed"],
        )


@dataclass
class PrivacyReport:
    """
    Final privacy report for one target.

    to_dict() produces the external JSON shape; from_dict() parses it back
    into a structurally identical object.
    """

    version: str
    timestamp: int
    """Unix milliseconds when the report was generated."""
    target_type: TargetType
    target: str
    overall_risk: Severity
    signals: list[RiskSignal]
    summary: ReportSummary
    mitigations: list[str]
    known_entities: list[Label]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "targetType": self.target_type.value,
            "target": self.target,
            "overallRisk": self.overall_risk.value,
            "signals": [s.to_dict() for s in self.signals],
            "summary": self.summary.to_dict(),
            "mitigations": list(self.mitigations),
            "knownEntities": [label.to_dict() for label in self.known_entities],
        }

    @classmethod
    def from_dict(cls, item: Mapping[str, Any]) -> "PrivacyReport":
        return cls(
            version=item["version"],
            timestamp=item["timestamp"],
            target_type=TargetType(item["targetType"]),
            target=item["target"],
            overall_risk=Severity(item["overallRisk"]),
            signals=[RiskSignal.from_dict(s) for s in item.get("signals") or []],
            summary=ReportSummary.from_dict(item["summary"]),
            mitigations=list(item.get("mitigations") or []),
            known_entities=[Label.from_dict(e) for e in item.get("knownEntities") or []],
        )
