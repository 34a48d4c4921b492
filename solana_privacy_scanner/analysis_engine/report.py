"""
Risk aggregation and report generation.

Runs every registered detector over a ScanContext, orders the signals
canonically, and folds them into an overall risk level. The result does not
depend on whether detectors ran sequentially or on a thread pool.
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from solana_privacy_scanner.analysis_engine.models import (
    REPORT_VERSION,
    Label,
    LabelType,
    PrivacyReport,
    ReportSummary,
    RiskSignal,
    ScanContext,
    Severity,
    severity_rank,
)
from solana_privacy_scanner.heuristics.base import Detector, ordered_unique
from solana_privacy_scanner.heuristics.registry import DetectorRegistry, default_registry
from solana_privacy_scanner.logging import get_logger

logger = get_logger(__name__)

_LABEL_TYPE_ORDER = {t: i for i, t in enumerate(LabelType)}


def calculate_overall_risk(high: int, medium: int, low: int) -> Severity:
    """
    Fold signal counts into one risk level.

    HIGH:   2+ high, or 1 high with 2+ medium.
    MEDIUM: 1 high, 2+ medium, or 1 medium with 2+ low.
    LOW:    everything else, including no signals.
    """
    if high >= 2 or (high >= 1 and medium >= 2):
        return Severity.HIGH
    if high >= 1 or medium >= 2 or (medium >= 1 and low >= 2):
        return Severity.MEDIUM
    return Severity.LOW


def _run_detector(detector: Detector, context: ScanContext) -> list[RiskSignal]:
    try:
        return list(detector.evaluate(context))
    except Exception as e:
        logger.warning(
            "detector_failed",
            detector=detector.detector_id,
            target=context.target,
            error=str(e),
            exc_info=True,
        )
        return []


def evaluate_detectors(
    context: ScanContext,
    registry: DetectorRegistry,
    max_workers: int | None = None,
) -> list[RiskSignal]:
    """
    Run all detectors and return their signals in canonical order:
    severity (HIGH first), then registration index, then signal id.
    """
    detectors = list(registry)
    if max_workers is not None and max_workers > 1 and len(detectors) > 1:
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="detector") as pool:
            results = list(pool.map(lambda d: _run_detector(d, context), detectors))
    else:
        results = [_run_detector(d, context) for d in detectors]

    indexed = [(index, signal) for index, signals in enumerate(results) for signal in signals]
    indexed.sort(key=lambda item: (-severity_rank(item[1].severity), item[0], item[1].id))
    return [signal for _, signal in indexed]


def _referenced_addresses(signals: Iterable[RiskSignal]) -> list[str]:
    out: list[str] = []
    for signal in signals:
        for ev in signal.evidence:
            if ev.reference:
                out.append(ev.reference)
            if ev.data and isinstance(ev.data.get("address"), str):
                out.append(ev.data["address"])
    return out


def collect_known_entities(context: ScanContext, signals: list[RiskSignal]) -> list[Label]:
    """
    Labels of counterparties and evidence-referenced addresses, one per
    address, grouped by label type in declaration order.
    """
    candidates = sorted(context.counterparties) + _referenced_addresses(signals)
    labels: list[Label] = []
    for address in ordered_unique(candidates):
        label = context.labels.get(address)
        if label is not None:
            labels.append(label)
    # sort is stable: first-seen order holds within a type
    labels.sort(key=lambda label: _LABEL_TYPE_ORDER[label.type])
    return labels


def generate_report(
    context: ScanContext,
    registry: DetectorRegistry | None = None,
    max_workers: int | None = None,
) -> PrivacyReport:
    """
    Build the PrivacyReport for one scan.

    Args:
        context: Normalized scan context.
        registry: Detectors to run; default_registry() when omitted.
        max_workers: Run detectors on a thread pool when greater than 1.

    Returns:
        PrivacyReport with canonically ordered signals. A context with zero
        transactions yields a LOW report with no signals.
    """
    registry = registry if registry is not None else default_registry()
    signals = evaluate_detectors(context, registry, max_workers=max_workers)

    high = sum(1 for s in signals if s.severity == Severity.HIGH)
    medium = sum(1 for s in signals if s.severity == Severity.MEDIUM)
    low = sum(1 for s in signals if s.severity == Severity.LOW)
    overall = calculate_overall_risk(high, medium, low)

    report = PrivacyReport(
        version=REPORT_VERSION,
        timestamp=int(time.time() * 1000),
        target_type=context.target_type,
        target=context.target,
        overall_risk=overall,
        signals=signals,
        summary=ReportSummary(
            total_signals=len(signals),
            high_risk_signals=high,
            medium_risk_signals=medium,
            low_risk_signals=low,
            transactions_analyzed=context.transaction_count,
        ),
        mitigations=ordered_unique(s.mitigation for s in signals),
        known_entities=collect_known_entities(context, signals),
    )
    logger.info(
        "report_generated",
        target=context.target,
        target_type=context.target_type.value,
        overall_risk=overall.value,
        signals=len(signals),
        transactions=context.transaction_count,
    )
    return report
