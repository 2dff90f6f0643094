"""Deterministic security score with per-rule caps, tier caps and density scaling.

The score starts at 100 and loses points per finding. Deductions flow through
three stages: a per-rule cap so one noisy rule cannot dominate, a per-tier cap
so many low-severity findings cannot sink a clean codebase, and (LOW tier
only) a density factor relative to the number of files scanned.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Literal

from carapace.findings import SEVERITIES, Finding

Grade = Literal["A", "B", "C", "D", "F"]

# Tuning note:
# - Raise a tier cap to let that severity contribute more before flattening.
# - The rule cap applies before tier caps, to each (rule id, severity) group;
#   a group over the cap is scaled proportionally. Grouping by severity keeps
#   points inside their tier, so adding a finding never raises the score.
# - Density divisor 3 means "3 low findings per file" is where the full low
#   deduction kicks in.
DEFAULT_DEDUCTIONS: dict[str, float] = {
    "critical": 15.0,
    "high": 8.0,
    "medium": 3.0,
    "low": 1.0,
    "info": 0.0,
}

DEFAULT_CONFIDENCE_MULTIPLIERS: dict[str, float] = {
    "high": 1.0,
    "medium": 0.6,
    "low": 0.3,
}

DEFAULT_TIER_CAPS: dict[str, float] = {
    "critical": 100.0,
    "high": 30.0,
    "low": 25.0,
}

DEFAULT_RULE_CAP = 30.0
DEFAULT_DENSITY_DIVISOR = 3.0

GRADE_THRESHOLDS: tuple[tuple[int, Grade], ...] = (
    (90, "A"),
    (80, "B"),
    (70, "C"),
    (55, "D"),
)


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    """Tunable scoring constants."""

    deductions: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_DEDUCTIONS))
    confidence_multipliers: dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_MULTIPLIERS)
    )
    rule_cap: float = DEFAULT_RULE_CAP
    tier_caps: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TIER_CAPS))
    density_divisor: float = DEFAULT_DENSITY_DIVISOR


@dataclass(slots=True)
class TierBreakdown:
    """Count and points deducted for one severity tier."""

    count: int = 0
    deducted: float = 0.0

    def to_dict(self) -> dict[str, float | int]:
        return {"count": self.count, "deducted": self.deducted}


@dataclass(slots=True)
class SecurityScore:
    """Final score, letter grade and per-severity breakdown."""

    score: int
    grade: Grade
    breakdown: dict[str, TierBreakdown]

    def to_dict(self) -> dict[str, object]:
        return {
            "score": self.score,
            "grade": self.grade,
            "breakdown": {severity: item.to_dict() for severity, item in self.breakdown.items()},
        }


def compute_score(
    findings: Iterable[Finding],
    file_count: int | None = None,
    *,
    config: ScoringConfig | None = None,
) -> SecurityScore:
    """Score findings; ``file_count`` enables LOW-tier density normalization."""
    active = config or ScoringConfig()
    items = list(findings)

    breakdown = {severity: TierBreakdown() for severity in SEVERITIES}
    raw_deductions = [_raw_deduction(finding, active) for finding in items]
    adjusted = _apply_rule_cap(items, raw_deductions, cap=active.rule_cap)

    tier_points = {severity: 0.0 for severity in SEVERITIES}
    for finding, points in zip(items, adjusted):
        breakdown[finding.severity].count += 1
        tier_points[finding.severity] += points

    for severity in SEVERITIES:
        capped = tier_points[severity]
        tier_cap = active.tier_caps.get(severity)
        if tier_cap is not None:
            capped = min(capped, tier_cap)
        if severity == "low":
            capped *= _density_factor(
                breakdown["low"].count,
                file_count,
                divisor=active.density_divisor,
            )
        breakdown[severity].deducted = round(capped, 2)

    total = sum(item.deducted for item in breakdown.values())
    score = int(_clamp(_round_half_up(100.0 - total), lower=0, upper=100))
    return SecurityScore(score=score, grade=grade_for(score), breakdown=breakdown)


def grade_for(score: int) -> Grade:
    for threshold, grade in GRADE_THRESHOLDS:
        if score >= threshold:
            return grade
    return "F"


def _raw_deduction(finding: Finding, config: ScoringConfig) -> float:
    base = config.deductions.get(finding.severity, 0.0)
    multiplier = config.confidence_multipliers.get(finding.confidence or "high", 1.0)
    return base * multiplier


def _apply_rule_cap(findings: list[Finding], deductions: list[float], *, cap: float) -> list[float]:
    totals: dict[tuple[str, str], float] = {}
    for finding, points in zip(findings, deductions):
        key = (finding.rule_id, finding.severity)
        totals[key] = totals.get(key, 0.0) + points

    adjusted: list[float] = []
    for finding, points in zip(findings, deductions):
        total = totals[(finding.rule_id, finding.severity)]
        if cap > 0 and total > cap:
            adjusted.append(points * (cap / total))
        else:
            adjusted.append(points)
    return adjusted


def _density_factor(low_count: int, file_count: int | None, *, divisor: float) -> float:
    if not file_count or file_count <= 0 or divisor <= 0:
        return 1.0
    density = low_count / file_count
    return min(1.0, math.sqrt(density / divisor))


def _round_half_up(value: float) -> float:
    return math.floor(value + 0.5)


def _clamp(value: float, *, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))
