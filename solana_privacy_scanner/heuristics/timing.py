"""
Timing patterns: bursts of activity, clock-like intervals, and activity
concentrated in one hour of the day.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from solana_privacy_scanner.analysis_engine.models import (
    Evidence,
    RiskSignal,
    ScanContext,
    Severity,
)
from solana_privacy_scanner.heuristics.base import (
    SECONDS_PER_HOUR,
    Detector,
    coefficient_of_variation,
    gaps,
    iso_utc,
    max_window,
    sorted_timestamps,
)


@dataclass
class TimingConfig:
    # Sliding window for bursts.
    burst_window_seconds: int = SECONDS_PER_HOUR
    burst_medium: int = 5
    burst_high: int = 10
    # Regular intervals: gap coefficient of variation below this, mean gap above min.
    interval_min_timestamps: int = 5
    interval_max_cv: float = 0.3
    interval_min_mean_seconds: float = 60.0
    interval_medium_gaps: int = 10
    # Daily / hourly schedules within this relative tolerance.
    schedule_tolerance: float = 0.1
    # Share of activity in the busiest UTC hour.
    timezone_min_timestamps: int = 10
    timezone_min_concentration: float = 0.4


class TimingDetector(Detector):
    detector_id = "timing"
    name = "Timing Patterns"
    category = "behavioral"

    def __init__(self, config: TimingConfig | None = None) -> None:
        self.config = config or TimingConfig()

    def detect(self, context: ScanContext) -> list[RiskSignal]:
        timestamps = sorted_timestamps(context.transactions)
        if not timestamps:
            return []
        signals: list[RiskSignal] = []
        for check in (self._check_burst, self._check_regular_interval, self._check_timezone):
            result = check(timestamps)
            if result is not None:
                signals.append(result)
        return signals

    def _check_burst(self, timestamps: list[int]) -> RiskSignal | None:
        cfg = self.config
        count, start, end = max_window(timestamps, cfg.burst_window_seconds)
        if count >= cfg.burst_high:
            severity = Severity.HIGH
        elif count >= cfg.burst_medium:
            severity = Severity.MEDIUM
        else:
            return None
        minutes = cfg.burst_window_seconds // 60
        return self.signal(
            id="timing-burst",
            name="Transaction Burst Pattern",
            severity=severity,
            reason=f"{count} transactions happened within {minutes} minutes.",
            impact=(
                "A sudden spike in activity is easy to spot and to correlate with real-world "
                "events or with other wallets showing the same burst."
            ),
            mitigation="Spread transactions out over a longer period.",
            confidence=0.8,
            evidence=[
                Evidence(
                    description=f"{count} transactions between {iso_utc(start)} and {iso_utc(end)}",
                    type="time-window",
                    data={"count": count, "start": start, "end": end},
                )
            ],
        )

    def _on_schedule(self, mean_gap: float, period: int) -> bool:
        return abs(mean_gap - period) <= period * self.config.schedule_tolerance

    def _check_regular_interval(self, timestamps: list[int]) -> RiskSignal | None:
        cfg = self.config
        if len(timestamps) < cfg.interval_min_timestamps:
            return None
        deltas = gaps(timestamps)
        cv = coefficient_of_variation(deltas)
        if cv is None or cv >= cfg.interval_max_cv:
            return None
        mean_gap = sum(deltas) / len(deltas)
        if mean_gap <= cfg.interval_min_mean_seconds:
            return None
        if self._on_schedule(mean_gap, 24 * SECONDS_PER_HOUR) or self._on_schedule(mean_gap, SECONDS_PER_HOUR):
            severity = Severity.HIGH
        elif len(deltas) >= cfg.interval_medium_gaps:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW
        minutes = round(mean_gap / 60)
        interval = f"{minutes}-minute" if minutes < 60 else f"{mean_gap / SECONDS_PER_HOUR:.1f}-hour"
        return self.signal(
            id="timing-regular-interval",
            name="Regular Transaction Interval",
            severity=severity,
            reason=f"Transactions happen at regular {interval} intervals, a sign of automation or a fixed schedule.",
            impact="Clock-like timing reveals bots, routines, and timezones, and links wallets that share the schedule.",
            mitigation="Add random delays between transactions.",
            confidence=0.85,
            evidence=[
                Evidence(
                    description=(
                        f"{len(deltas)} gaps averaging {minutes} minutes ({cv * 100:.1f}% variation)"
                    ),
                    type="statistic",
                    data={"gaps": len(deltas), "meanGapSeconds": round(mean_gap, 2), "cv": round(cv, 4)},
                )
            ],
        )

    def _check_timezone(self, timestamps: list[int]) -> RiskSignal | None:
        cfg = self.config
        if len(timestamps) < cfg.timezone_min_timestamps:
            return None
        hours = Counter(datetime.fromtimestamp(ts, tz=timezone.utc).hour for ts in timestamps)
        hour, count = sorted(hours.items(), key=lambda hc: (-hc[1], hc[0]))[0]
        share = count / len(timestamps)
        if share <= cfg.timezone_min_concentration:
            return None
        return self.signal(
            id="timing-timezone-pattern",
            name="Timezone Activity Pattern",
            severity=Severity.MEDIUM,
            reason=f"{share:.0%} of transactions happen during the {hour:02d}:00 UTC hour.",
            impact="Activity concentrated at one time of day narrows down where in the world the owner lives.",
            mitigation="Schedule transactions at varied times of day.",
            confidence=0.65,
            evidence=[
                Evidence(
                    description=f"{count} of {len(timestamps)} transactions between {hour:02d}:00 and {hour:02d}:59 UTC",
                    type="statistic",
                    data={"hourUtc": hour, "count": count, "total": len(timestamps)},
                )
            ],
        )
