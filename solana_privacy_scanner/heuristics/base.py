"""
Detector base class and shared helpers for privacy heuristics.

Every detector is pure and deterministic: it reads an immutable ScanContext,
never mutates it, performs no I/O, and sorts any evidence derived from sets.
evaluate() guarantees the empty-context contract (zero transactions -> no
signals) so subclasses only implement detect().
"""

from __future__ import annotations

import statistics
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
    TransactionMetadata,
    Transfer,
)

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


class Detector(ABC):
    """
    One privacy heuristic.

    Subclasses set detector_id / name / category and implement detect().
    Thresholds live in a per-detector config dataclass passed to __init__.
    """

    detector_id: str = ""
    name: str = ""
    category: str | None = None

    def evaluate(self, context: ScanContext) -> list[RiskSignal]:
        """Return this detector's signals for the context; [] when nothing was parsed."""
        if context.transaction_count == 0:
            return []
        return self.detect(context)

    @abstractmethod
    def detect(self, context: ScanContext) -> list[RiskSignal]:
        """Run the rules over a non-empty context."""

    def signal(self, **kwargs: Any) -> RiskSignal:
        """Build a RiskSignal tagged with this detector's category."""
        return build_signal(category=self.category, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(detector_id={self.detector_id!r})"


def build_signal(
    *,
    id: str,
    name: str,
    severity: Severity,
    reason: str,
    impact: str,
    mitigation: str,
    confidence: float,
    evidence: Iterable[Evidence] = (),
    category: str | None = None,
) -> RiskSignal:
    return RiskSignal(
        id=id,
        name=name,
        severity=severity,
        category=category,
        reason=reason,
        impact=impact,
        evidence=tuple(evidence),
        mitigation=mitigation,
        confidence=round(confidence, 2),
    )


def short_address(address: str) -> str:
    """First 8 characters of an address or signature, for evidence text."""
    return address[:8] + "..." if len(address) > 11 else address


def display_name(context: ScanContext, address: str) -> str:
    """Label name with short address, or just the short address."""
    label = context.labels.get(address)
    if label is not None:
        return f"{label.name} ({short_address(address)})"
    return short_address(address)


def transfers_by_signature(context: ScanContext) -> dict[str, list[Transfer]]:
    out: dict[str, list[Transfer]] = defaultdict(list)
    for t in context.transfers:
        out[t.signature].append(t)
    return out


def counterparty_of(context: ScanContext, transfer: Transfer) -> str | None:
    """The other party of a transfer that touches the target; None otherwise."""
    if transfer.from_address == context.target:
        return transfer.to_address
    if transfer.to_address == context.target:
        return transfer.from_address
    return None


def sorted_timestamps(transactions: Sequence[TransactionMetadata]) -> list[int]:
    return sorted(tx.block_time for tx in transactions if tx.block_time is not None)


def gaps(timestamps: Sequence[int]) -> list[int]:
    return [b - a for a, b in zip(timestamps, timestamps[1:])]


def coefficient_of_variation(values: Sequence[float]) -> float | None:
    """Population stdev / mean; None for fewer than 2 values or a non-positive mean."""
    if len(values) < 2:
        return None
    mean = statistics.fmean(values)
    if mean <= 0:
        return None
    return statistics.pstdev(values) / mean


def max_window(timestamps: Sequence[int], window_seconds: int) -> tuple[int, int, int]:
    """
    Largest number of sorted timestamps inside any window of window_seconds.

    Returns:
        (count, window_start, window_end); (0, 0, 0) for no timestamps.
    """
    best = (0, 0, 0)
    start = 0
    for end in range(len(timestamps)):
        while timestamps[end] - timestamps[start] >= window_seconds:
            start += 1
        count = end - start + 1
        if count > best[0]:
            best = (count, timestamps[start], timestamps[end])
    return best


def iso_utc(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def ordered_unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            out.append(item)
    return out
