"""
Tests for privacy policies: presets, JSON policy files, and evaluation.
"""

from __future__ import annotations

import json

import pytest

from solana_privacy_scanner.analysis_engine.models import (
    PrivacyReport,
    ReportSummary,
    RiskSignal,
    Severity,
    TargetType,
)
from solana_privacy_scanner.analysis_engine.report import calculate_overall_risk
from solana_privacy_scanner.config.policy import (
    DEFAULT_POLICY,
    PERMISSIVE_POLICY,
    STRICT_POLICY,
    PrivacyPolicy,
    evaluate_policy,
    load_policy,
)
from solana_privacy_scanner.core.exceptions import PolicyError


def _signal(signal_id: str, severity: Severity) -> RiskSignal:
    return RiskSignal(
        id=signal_id,
        name=signal_id,
        severity=severity,
        reason="r",
        impact="i",
        mitigation="m",
        confidence=0.8,
    )


def _report(*signals: RiskSignal) -> PrivacyReport:
    high = sum(1 for s in signals if s.severity == Severity.HIGH)
    medium = sum(1 for s in signals if s.severity == Severity.MEDIUM)
    low = sum(1 for s in signals if s.severity == Severity.LOW)
    return PrivacyReport(
        version="1.0.0",
        timestamp=1_700_000_000_000,
        target_type=TargetType.WALLET,
        target="9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka",
        overall_risk=calculate_overall_risk(high, medium, low),
        signals=list(signals),
        summary=ReportSummary(len(signals), high, medium, low, 10),
        mitigations=[],
        known_entities=[],
    )


def test_load_policy_presets():
    assert load_policy(None) is DEFAULT_POLICY
    assert load_policy("strict") is STRICT_POLICY
    assert load_policy(" Permissive ") is PERMISSIVE_POLICY


def test_load_policy_file_camel_and_snake(tmp_path):
    """Policy files accept camelCase and snake_case keys."""
    path = tmp_path / "policy.json"
    path.write_text(json.dumps({"maxRiskLevel": "HIGH", "max_total_signals": 4, "blockedSignals": ["memo-pii-exposure"]}), encoding="utf-8")
    policy = load_policy(path)
    assert policy.max_risk_level == Severity.HIGH
    assert policy.max_total_signals == 4
    assert policy.blocked_signals == ["memo-pii-exposure"]
    assert policy.max_high_severity == 0


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"maxRiskLevel": "EXTREME"}), json.dumps({"maxHighSeverity": -1})],
)
def test_load_policy_invalid_file(tmp_path, content):
    path = tmp_path / "policy.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(PolicyError):
        load_policy(path)


def test_load_policy_unknown():
    with pytest.raises(PolicyError, match="Unknown policy preset"):
        load_policy("paranoid")


def test_empty_report_passes_every_preset():
    for policy in (DEFAULT_POLICY, STRICT_POLICY, PERMISSIVE_POLICY):
        assert evaluate_policy(_report(), policy).passed


def test_default_policy_rejects_high_signal():
    """Default: one HIGH signal exceeds max_high_severity=0 (risk MEDIUM is allowed)."""
    result = evaluate_policy(_report(_signal("memo-pii-exposure", Severity.HIGH)), DEFAULT_POLICY)
    assert not result.passed
    assert result.violations == ["1 HIGH severity signal(s) exceed maximum 0"]


def test_strict_policy_lists_every_violation():
    report = _report(
        _signal("a", Severity.MEDIUM),
        _signal("b", Severity.MEDIUM),
        _signal("c", Severity.MEDIUM),
    )
    result = evaluate_policy(report, STRICT_POLICY)
    assert result.violations == [
        "Overall risk MEDIUM exceeds maximum LOW",
        "3 MEDIUM severity signal(s) exceed maximum 2",
    ]


def test_permissive_policy():
    report = _report(*[_signal(f"h{i}", Severity.HIGH) for i in range(3)])
    assert evaluate_policy(report, PERMISSIVE_POLICY).passed
    report = _report(*[_signal(f"h{i}", Severity.HIGH) for i in range(4)])
    assert not evaluate_policy(report, PERMISSIVE_POLICY).passed


def test_blocked_and_total_signals():
    policy = PrivacyPolicy(max_risk_level=Severity.HIGH, max_high_severity=None, max_total_signals=1, blocked_signals=["timing-burst"])
    result = evaluate_policy(_report(_signal("timing-burst", Severity.LOW), _signal("x", Severity.LOW)), policy)
    assert result.violations == [
        "2 signal(s) exceed maximum 1",
        "Blocked signal present: timing-burst",
    ]
