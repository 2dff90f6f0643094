"""Tests for the security score."""

from __future__ import annotations

import random

import pytest

from carapace.findings import SEVERITIES, Finding
from carapace.scoring import ScoringConfig, compute_score, grade_for
from tests.helpers_findings import make_finding


def test_no_findings_scores_perfect() -> None:
    result = compute_score([])
    assert (result.score, result.grade) == (100, "A")
    assert all(item.count == 0 for item in result.breakdown.values())


def test_single_critical_deducts_fifteen() -> None:
    result = compute_score([make_finding(severity="critical")])
    assert (result.score, result.grade) == (85, "B")
    assert result.breakdown["critical"].count == 1
    assert result.breakdown["critical"].deducted == 15.0


def test_rule_cap_limits_one_noisy_rule() -> None:
    findings = [make_finding(severity="critical", start_line=line) for line in range(1, 11)]
    result = compute_score(findings)
    assert (result.score, result.grade) == (70, "C")
    assert result.breakdown["critical"].deducted == 30.0


def test_critical_tier_cap_bottoms_out_at_zero() -> None:
    findings = [make_finding(severity="critical", rule_id=f"rule-{index}") for index in range(7)]
    result = compute_score(findings)
    assert (result.score, result.grade) == (0, "F")
    assert result.breakdown["critical"].deducted == 100.0


def test_low_tier_cap_without_file_count() -> None:
    findings = [make_finding(severity="low", rule_id=f"low-{index}") for index in range(50)]
    result = compute_score(findings)
    assert (result.score, result.grade) == (75, "C")


def test_low_density_scales_with_file_count() -> None:
    findings = [make_finding(severity="low", rule_id=f"low-{index}") for index in range(50)]
    result = compute_score(findings, file_count=1000)
    assert result.breakdown["low"].deducted == 3.23
    assert result.score == 97


def test_density_never_applies_to_high() -> None:
    findings = [make_finding(severity="high", rule_id=f"high-{index}") for index in range(2)]
    assert compute_score(findings, file_count=1000).score == 84


def test_confidence_multiplier_reduces_deduction() -> None:
    assert compute_score([make_finding(severity="critical", confidence="medium")]).score == 91
    assert compute_score([make_finding(severity="high", confidence="low")]).score == 98


def test_info_findings_do_not_deduct() -> None:
    result = compute_score([make_finding(severity="info", rule_id=f"i-{n}") for n in range(20)])
    assert result.score == 100
    assert result.breakdown["info"].count == 20


def test_capped_rule_spanning_tiers_never_raises_score() -> None:
    findings = [make_finding(severity="high", rule_id=f"h-{index}", start_line=index) for index in range(4)]
    findings += [make_finding(severity="critical", rule_id="R", start_line=10 + index) for index in range(2)]
    before = compute_score(findings)
    after = compute_score([*findings, make_finding(severity="high", rule_id="R", start_line=20)])
    assert before.score == 40
    assert after.score <= before.score
    assert after.breakdown["critical"].deducted == 30.0


@pytest.mark.parametrize("seed", range(25))
def test_adding_findings_never_raises_score(seed: int) -> None:
    rng = random.Random(seed)
    file_count = rng.choice([None, 1, 5, 40])
    findings: list[Finding] = []
    previous = compute_score(findings, file_count).score
    for line in range(60):
        findings.append(
            make_finding(
                severity=rng.choice(SEVERITIES),
                confidence=rng.choice(["high", "medium", "low"]),
                rule_id=rng.choice(["R", "S", "T", f"unique-{line}"]),
                start_line=line,
            )
        )
        current = compute_score(findings, file_count).score
        assert current <= previous, findings[-1]
        previous = current


def test_score_is_deterministic() -> None:
    findings = [make_finding(severity="high", rule_id=f"r-{n}", start_line=n) for n in range(6)]
    assert compute_score(findings, 3).to_dict() == compute_score(list(findings), 3).to_dict()


def test_custom_scoring_config() -> None:
    config = ScoringConfig(deductions={"critical": 20.0, "high": 8.0, "medium": 3.0, "low": 1.0, "info": 0.0})
    assert compute_score([make_finding(severity="critical")], config=config).score == 80


def test_grade_boundaries() -> None:
    assert [grade_for(value) for value in (90, 89, 80, 79, 70, 69, 55, 54)] == [
        "A",
        "B",
        "B",
        "C",
        "C",
        "D",
        "D",
        "F",
    ]
