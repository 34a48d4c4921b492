"""
Analysis engine package: scan context, risk signals, and privacy reports.

Report generation lives in analysis_engine.report; it depends on the
heuristics package, which itself depends on these models.
"""

from solana_privacy_scanner.analysis_engine.models import (
    REPORT_VERSION,
    Evidence,
    InstructionCategory,
    Label,
    LabelType,
    NormalizedInstruction,
    PDAInteraction,
    PrivacyReport,
    ReportSummary,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
    TimeRange,
    TokenAccountBalance,
    TokenAccountEvent,
    TokenAccountEventType,
    TransactionMetadata,
    Transfer,
)

__all__ = [
    "REPORT_VERSION",
    "Evidence",
    "InstructionCategory",
    "Label",
    "LabelType",
    "NormalizedInstruction",
    "PDAInteraction",
    "PrivacyReport",
    "ReportSummary",
    "RiskSignal",
    "ScanContext",
    "Severity",
    "TargetType",
    "TimeRange",
    "TokenAccountBalance",
    "TokenAccountEvent",
    "TokenAccountEventType",
    "TransactionMetadata",
    "Transfer",
]
