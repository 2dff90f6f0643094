"""Output rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import click

from carapace import __version__
from carapace.analyzer import ReviewResult
from carapace.findings import Finding
from carapace.fixers import ApplyFixesResult

SEVERITY_COLORS = {
    "critical": "red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "white",
}

GRADE_COLORS = {"A": "green", "B": "green", "C": "yellow", "D": "red", "F": "red"}


def render_human(result: ReviewResult, *, limit: int = 10) -> str:
    """Render a compact colorized summary."""
    lines: list[str] = []
    if result.score is not None:
        lines.append(
            click.style(
                f"Security score: {result.score.score}/100 (grade {result.score.grade})",
                fg=GRADE_COLORS[result.score.grade],
                bold=True,
            )
        )

    if result.findings:
        lines.append(click.style("Top findings:", bold=True))
        for index, finding in enumerate(result.findings[:limit], start=1):
            label = click.style(finding.severity.upper(), fg=SEVERITY_COLORS[finding.severity], bold=True)
            lines.append(f"{index}. {label} [{finding.rule_id}] {finding.title}")
            lines.append(f"   at: {_location(finding)}")
            if finding.suggestion:
                lines.append(f"   fix: {finding.suggestion}")
        hidden = len(result.findings) - limit
        if hidden > 0:
            lines.append(f"... and {hidden} more (use --format json for the full list)")

    if result.errors:
        lines.append(click.style("Sources that failed:", bold=True))
        for name, error in sorted(result.errors.items()):
            lines.append(f"- {name}: {error}")

    lines.append(result.summary)
    return "\n".join(lines)


def render_json(result: ReviewResult, *, input_source: str, base: str | None = None, head: str | None = None) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(result, input_source=input_source, base=base, head=head), sort_keys=True)


def build_json_payload(
    result: ReviewResult,
    *,
    input_source: str,
    base: str | None = None,
    head: str | None = None,
) -> dict[str, Any]:
    """Build stable JSON payload for CI and automation."""
    payload = result.to_dict()
    payload["meta"] = {
        "generated_at": datetime.now(tz=UTC)
        .replace(microsecond=0)
        .isoformat()
        .replace("+00:00", "Z"),
        "base": base,
        "head": head,
        "input_source": input_source,
        "version": __version__,
    }
    return payload


def render_fix_report(result: ApplyFixesResult, *, dry_run: bool) -> str:
    verb = "Would apply" if dry_run else "Applied"
    lines = [click.style(f"{verb} {result.applied_count} fix(es) across {len(result.files)} file(s).", bold=True)]
    for file_result in result.files:
        lines.append(f"- {file_result.file_path}: {len(file_result.applied_findings)} fix(es)")
        for finding in file_result.applied_findings:
            lines.append(f"    line {finding.start_line}: [{finding.rule_id}] {finding.title}")
    if result.skipped:
        lines.append(click.style(f"Skipped {len(result.skipped)} fix(es):", bold=True))
        for skipped in result.skipped:
            lines.append(f"- {_location(skipped.finding)} [{skipped.finding.rule_id}]: {skipped.reason}")
    return "\n".join(lines)


def _location(finding: Finding) -> str:
    if finding.end_line and finding.end_line != finding.start_line:
        return f"{finding.file_path}:{finding.start_line}-{finding.end_line}"
    return f"{finding.file_path}:{finding.start_line}"
