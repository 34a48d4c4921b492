"""
Tests for the report data model: JSON contract keys and round-trip parsing.
"""

from __future__ import annotations

import json

import pytest

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    Label,
    LabelType,
    PrivacyReport,
    ReportSummary,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
    severity_rank,
)

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
EXCHANGE = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def _report() -> PrivacyReport:
    signal = RiskSignal(
        id="counterparty-reuse",
        name="Repeated Counterparty",
        severity=Severity.HIGH,
        category="linkability",
        reason="1 counterparty address(es) appear in repeated transfers.",
        impact="Stable relationships are visible.",
        mitigation="Use fresh receiving addresses.",
        confidence=0.85,
        evidence=(
            Evidence(
                description="10 transfers with Binance Hot Wallet",
                type="counterparty",
                reference=EXCHANGE,
                data={"address": EXCHANGE, "transfers": 10, "sent": 10, "received": 0},
            ),
            Evidence(description="plain evidence"),
        ),
    )
    return PrivacyReport(
        version="1.0.0",
        timestamp=1_700_000_000_000,
        target_type=TargetType.WALLET,
        target=TARGET,
        overall_risk=Severity.MEDIUM,
        signals=[signal],
        summary=ReportSummary(
            total_signals=1,
            high_risk_signals=1,
            medium_risk_signals=0,
            low_risk_signals=0,
            transactions_analyzed=20,
        ),
        mitigations=["Use fresh receiving addresses."],
        known_entities=[
            Label(
                address=EXCHANGE,
                name="Binance Hot Wallet",
                type=LabelType.EXCHANGE,
                description="Binance exchange hot wallet",
                related_addresses=("5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9",),
            )
        ],
    )


def test_report_round_trip():
    """to_dict -> JSON -> from_dict yields a field-for-field identical report."""
    report = _report()
    parsed = PrivacyReport.from_dict(json.loads(json.dumps(report.to_dict())))
    assert parsed == report


def test_report_json_uses_camel_case_keys():
    """External JSON shape: camelCase keys, enum values as strings."""
    payload = _report().to_dict()
    assert set(payload) == {
        "version",
        "timestamp",
        "targetType",
        "target",
        "overallRisk",
        "signals",
        "summary",
        "mitigations",
        "knownEntities",
    }
    assert payload["targetType"] == "wallet"
    assert payload["overallRisk"] == "MEDIUM"
    assert payload["summary"]["transactionsAnalyzed"] == 20
    assert payload["knownEntities"][0]["relatedAddresses"] == ["5tzFkiKscXHK5ZXCGbXZxdw7gTjjD1mBwuoFbhUvuAi9"]


def test_evidence_optional_fields_omitted():
    """Evidence without type/reference/data serializes to description only."""
    assert Evidence(description="x").to_dict() == {"description": "x"}


def test_label_from_dict_rejects_unknown_type():
    """Unknown label types raise ValueError."""
    with pytest.raises(ValueError):
        Label.from_dict({"address": EXCHANGE, "name": "X", "type": "casino"})


def test_severity_rank_order():
    """LOW < MEDIUM < HIGH."""
    assert severity_rank(Severity.LOW) < severity_rank(Severity.MEDIUM) < severity_rank(Severity.HIGH)


def test_empty_context_is_well_formed():
    """Every ScanContext collection defaults to empty."""
    context = ScanContext(target=TARGET, target_type=TargetType.WALLET)
    assert context.transaction_count == 0
    assert context.transfers == ()
    assert context.counterparties == frozenset()
    assert dict(context.labels) == {}
    assert context.time_range.earliest is None
