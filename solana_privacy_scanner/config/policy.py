"""
Privacy policy: thresholds a report must satisfy (CI gating, API consumers).

A policy is a pydantic model loaded from a preset name (default, strict,
permissive) or a JSON file. Keys may be snake_case or camelCase.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from solana_privacy_scanner.analysis_engine.models import PrivacyReport, Severity, severity_rank
from solana_privacy_scanner.core.exceptions import PolicyError


class PrivacyPolicy(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    max_risk_level: Severity = Field(Severity.MEDIUM, description="Highest acceptable overall risk")
    max_high_severity: int | None = Field(0, ge=0, description="Max HIGH signals; None = unlimited")
    max_medium_severity: int | None = Field(None, ge=0, description="Max MEDIUM signals; None = unlimited")
    max_total_signals: int | None = Field(None, ge=0, description="Max signals of any severity")
    blocked_signals: list[str] = Field(default_factory=list, description="Signal ids that must not appear")


class PolicyResult(BaseModel):
    passed: bool
    violations: list[str] = Field(default_factory=list)


DEFAULT_POLICY = PrivacyPolicy()
STRICT_POLICY = PrivacyPolicy(
    max_risk_level=Severity.LOW,
    max_high_severity=0,
    max_medium_severity=2,
)
PERMISSIVE_POLICY = PrivacyPolicy(max_risk_level=Severity.HIGH, max_high_severity=3)

PRESETS: dict[str, PrivacyPolicy] = {
    "default": DEFAULT_POLICY,
    "strict": STRICT_POLICY,
    "permissive": PERMISSIVE_POLICY,
}


def load_policy(path_or_preset: str | Path | None) -> PrivacyPolicy:
    """
    Resolve a preset name or load a JSON policy file.

    Raises:
        PolicyError: unknown preset, unreadable file, or invalid policy.
    """
    if path_or_preset is None:
        return DEFAULT_POLICY
    key = str(path_or_preset).strip()
    if key.lower() in PRESETS:
        return PRESETS[key.lower()]
    path = Path(key)
    if not path.is_file():
        raise PolicyError(f"Unknown policy preset or missing file: {key}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PolicyError(f"Cannot read policy file {path}: {e}") from e
    try:
        return PrivacyPolicy.model_validate(payload)
    except ValidationError as e:
        raise PolicyError(f"Invalid policy file {path}: {e}") from e


def evaluate_policy(report: PrivacyReport, policy: PrivacyPolicy) -> PolicyResult:
    """Check a report against a policy; every failed threshold is listed."""
    violations: list[str] = []
    summary = report.summary
    if severity_rank(report.overall_risk) > severity_rank(policy.max_risk_level):
        violations.append(
            f"Overall risk {report.overall_risk.value} exceeds maximum {policy.max_risk_level.value}"
        )
    if policy.max_high_severity is not None and summary.high_risk_signals > policy.max_high_severity:
        violations.append(
            f"{summary.high_risk_signals} HIGH severity signal(s) exceed maximum {policy.max_high_severity}"
        )
    if policy.max_medium_severity is not None and summary.medium_risk_signals > policy.max_medium_severity:
        violations.append(
            f"{summary.medium_risk_signals} MEDIUM severity signal(s) exceed maximum {policy.max_medium_severity}"
        )
    if policy.max_total_signals is not None and summary.total_signals > policy.max_total_signals:
        violations.append(f"{summary.total_signals} signal(s) exceed maximum {policy.max_total_signals}")
    present = {s.id for s in report.signals}
    for signal_id in policy.blocked_signals:
        if signal_id in present:
            violations.append(f"Blocked signal present: {signal_id}")
    return PolicyResult(passed=not violations, violations=violations)
