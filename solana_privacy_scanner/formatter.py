"""
Plain-text rendering of a PrivacyReport for terminal output.
"""

from __future__ import annotations

from datetime import datetime, timezone

from solana_privacy_scanner.analysis_engine.models import PrivacyReport, RiskSignal

# Evidence lines shown per signal before "... and N more".
MAX_EVIDENCE_LINES = 5

_RULE = "=" * 72


def _format_signal(index: int, signal: RiskSignal) -> list[str]:
    lines = [
        f"{index}. [{signal.severity.value}] {signal.name} ({signal.id}, confidence {signal.confidence:.0%})",
        f"   Reason: {signal.reason}",
        f"   Impact: {signal.impact}",
    ]
    if signal.evidence:
        lines.append("   Evidence:")
        for ev in signal.evidence[:MAX_EVIDENCE_LINES]:
            lines.append(f"     - {ev.description}")
        extra = len(signal.evidence) - MAX_EVIDENCE_LINES
        if extra > 0:
            lines.append(f"     ... and {extra} more")
    lines.append(f"   Mitigation: {signal.mitigation}")
    return lines


def format_report(report: PrivacyReport) -> str:
    generated = datetime.fromtimestamp(report.timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    s = report.summary
    lines = [
        _RULE,
        f"Solana Privacy Report ({report.target_type.value})",
        f"Target:       {report.target}",
        f"Generated:    {generated}",
        f"Overall risk: {report.overall_risk.value}",
        _RULE,
        (
            f"Transactions analyzed: {s.transactions_analyzed}   Signals: {s.total_signals} "
            f"(HIGH {s.high_risk_signals}, MEDIUM {s.medium_risk_signals}, LOW {s.low_risk_signals})"
        ),
        "",
    ]
    if not report.signals:
        lines.append("No privacy risks detected.")
    for i, signal in enumerate(report.signals, start=1):
        lines.extend(_format_signal(i, signal))
        lines.append("")
    if report.known_entities:
        lines.append("Known entities:")
        for label in report.known_entities:
            lines.append(f"  - {label.name} [{label.type.value}] {label.address}")
        lines.append("")
    if report.mitigations:
        lines.append("Recommended actions:")
        for m in report.mitigations:
            lines.append(f"  * {m}")
    return "\n".join(lines).rstrip() + "\n"
