"""
Tests for risk aggregation, report generation, and the detector registry.
"""

from __future__ import annotations

import pytest

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    Label,
    LabelType,
    RiskSignal,
    ScanContext,
    Severity,
    TargetType,
)
from solana_privacy_scanner.analysis_engine.report import (
    calculate_overall_risk,
    collect_known_entities,
    generate_report,
)
from solana_privacy_scanner.heuristics import Detector, DetectorRegistry, default_registry
from solana_privacy_scanner.normalizer import normalize
from solana_privacy_scanner.solana_listener.models import RawTransaction, RawWalletData

TARGET = "9QCfNuQuxct1Xk9ytFYgxc5fThmTzL4pHQnSjjrVUrka"
FRIEND = "7F1WzVNQ1Qpurqxxdyv3UrFQR3uoNepULVW9A4bAJ5nZ"
EXCHANGE = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
BRIDGE = "wormDTUJ6AWPNvk59vGQbDvGJmqbDTdgWgAqcLBCgUb"


class _FixedDetector(Detector):
    """Emits preset signals for any non-empty context."""

    def __init__(self, detector_id: str, *signals: RiskSignal) -> None:
        self.detector_id = detector_id
        self._signals = list(signals)

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        return list(self._signals)


class _BrokenDetector(Detector):
    detector_id = "broken"

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        raise RuntimeError("boom")


def _signal(signal_id: str, severity: Severity, mitigation: str = "Do something.") -> RiskSignal:
    return RiskSignal(
        id=signal_id,
        name=signal_id,
        severity=severity,
        reason="r",
        impact="i",
        mitigation=mitigation,
        confidence=0.5,
    )


def _context(count: int = 1, **kwargs) -> ScanContext:
    return ScanContext(target=TARGET, target_type=TargetType.WALLET, transaction_count=count, **kwargs)


def _wallet_snapshot(tx_factory) -> RawWalletData:
    transactions = []
    for i in range(12):
        sig = f"sig{i:02d}" + "1" * 60
        to = EXCHANGE if i % 3 == 0 else FRIEND
        raw = tx_factory(sig, TARGET, to, 2_000_000_000, 1_700_000_000 + i * 120, memo="invoice payment ref 9" if i == 0 else None)
        transactions.append(RawTransaction(signature=sig, transaction=raw, block_time=1_700_000_000 + i * 120))
    return RawWalletData(address=TARGET, transactions=transactions)


@pytest.mark.parametrize(
    "high,medium,low,expected",
    [
        (2, 0, 0, Severity.HIGH),
        (1, 2, 0, Severity.HIGH),
        (1, 1, 0, Severity.MEDIUM),
        (0, 2, 0, Severity.MEDIUM),
        (0, 1, 2, Severity.MEDIUM),
        (0, 1, 1, Severity.LOW),
        (0, 0, 5, Severity.LOW),
        (0, 0, 0, Severity.LOW),
    ],
)
def test_aggregation_table(high, medium, low, expected):
    """Overall risk from signal counts."""
    assert calculate_overall_risk(high, medium, low) == expected


def test_empty_context_low_report():
    """Zero transactions -> LOW, no signals, default battery."""
    report = generate_report(_context(count=0))
    assert report.overall_risk == Severity.LOW
    assert report.signals == []
    assert report.summary.total_signals == 0
    assert report.summary.transactions_analyzed == 0
    assert report.mitigations == []


def test_canonical_order_and_summary():
    """Signals ordered by severity, then registration index, then id; mitigations deduplicated."""
    registry = DetectorRegistry([
        _FixedDetector("first", _signal("b-low", Severity.LOW), _signal("a-high", Severity.HIGH, "Same.")),
        _FixedDetector("second", _signal("z-high", Severity.HIGH, "Same."), _signal("m-medium", Severity.MEDIUM)),
    ])
    report = generate_report(_context(), registry=registry)
    assert [s.id for s in report.signals] == ["a-high", "z-high", "m-medium", "b-low"]
    assert report.overall_risk == Severity.HIGH
    assert (report.summary.high_risk_signals, report.summary.medium_risk_signals, report.summary.low_risk_signals) == (2, 1, 1)
    assert report.mitigations == ["Same.", "Do something."]


def test_failing_detector_is_skipped():
    """One detector raising does not abort the report."""
    registry = DetectorRegistry([_BrokenDetector(), _FixedDetector("ok", _signal("ok", Severity.LOW))])
    report = generate_report(_context(), registry=registry)
    assert [s.id for s in report.signals] == ["ok"]


def test_registry_rejects_duplicates():
    registry = DetectorRegistry([_FixedDetector("dup")])
    with pytest.raises(ValueError):
        registry.register(_FixedDetector("dup"))
    with pytest.raises(ValueError):
        registry.register(_FixedDetector(""))
    assert registry.ids() == ["dup"]


def test_default_registry_battery():
    """Default registry holds every detector once, fee payer first."""
    registry = default_registry()
    ids = registry.ids()
    assert len(ids) == len(set(ids)) == len(registry) == 16
    assert ids[0] == "fee-payer-reuse"


def test_known_entities_grouped_by_type():
    """Labels of counterparties and evidence references, exchanges before bridges."""
    labels = {
        BRIDGE: Label(address=BRIDGE, name="Wormhole", type=LabelType.BRIDGE),
        EXCHANGE: Label(address=EXCHANGE, name="Binance", type=LabelType.EXCHANGE),
    }
    context = _context(counterparties=frozenset({BRIDGE}), labels=labels)
    signal = RiskSignal(
        id="x",
        name="x",
        severity=Severity.LOW,
        reason="r",
        impact="i",
        mitigation="m",
        confidence=0.5,
        evidence=(Evidence(description="d", data={"address": EXCHANGE}),),
    )
    entities = collect_known_entities(context, [signal])
    assert [label.address for label in entities] == [EXCHANGE, BRIDGE]


def test_report_deterministic(tx_factory, labels):
    """Same raw data and labels -> identical report apart from the timestamp."""
    first = generate_report(normalize(_wallet_snapshot(tx_factory), labels)).to_dict()
    second = generate_report(normalize(_wallet_snapshot(tx_factory), labels)).to_dict()
    first.pop("timestamp")
    second.pop("timestamp")
    assert first == second
    assert first["signals"]


def test_thread_pool_matches_sequential(tx_factory, labels):
    """Running detectors on a thread pool does not change the report."""
    context = normalize(_wallet_snapshot(tx_factory), labels)
    sequential = generate_report(context).to_dict()
    threaded = generate_report(context, max_workers=4).to_dict()
    sequential.pop("timestamp")
    threaded.pop("timestamp")
    assert sequential == threaded


def test_full_wallet_report(tx_factory, labels):
    """End to end: exchange deposits and counterparty reuse show up with the exchange as a known entity."""
    report = generate_report(normalize(_wallet_snapshot(tx_factory), labels))
    ids = {s.id for s in report.signals}
    assert "known-entity-exchange" in ids
    assert "counterparty-reuse" in ids
    assert "memo-descriptive-content" in ids
    assert report.summary.transactions_analyzed == 12
    assert [label.address for label in report.known_entities] == [EXCHANGE]
