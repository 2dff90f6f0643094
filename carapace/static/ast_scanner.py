"""Syntax-tree rules: metadata plus conversion of tree issues into findings."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from carapace.findings import Finding, Severity
from carapace.static.base import (
    JS_TS,
    PY,
    TS_ONLY,
    AstIssue,
    LineRange,
    applies_to,
    build_fix_diff,
    extension_of,
    extract_snippet,
    in_ranges,
)
from carapace.static.js_ast import analyze_js
from carapace.static.python_ast import analyze_python


@dataclass(frozen=True, slots=True)
class AstRule:
    id: str
    title: str
    description: str
    suggestion: str
    severity: Severity
    category: str
    languages: tuple[str, ...]


AST_RULES: tuple[AstRule, ...] = (
    AstRule(
        id="cp-clean-unused-import",
        title="Unused import",
        description="An imported binding is never referenced.",
        suggestion="Remove the import.",
        severity="low",
        category="quality",
        languages=JS_TS + PY,
    ),
    AstRule(
        id="cp-clean-unused-variable",
        title="Unused variable",
        description="A variable is assigned but never read.",
        suggestion="Remove the variable or use it.",
        severity="low",
        category="quality",
        languages=JS_TS + PY,
    ),
    AstRule(
        id="cp-clean-unused-function",
        title="Unused function",
        description="A function is neither called nor exported.",
        suggestion="Delete the dead function.",
        severity="low",
        category="quality",
        languages=JS_TS + PY,
    ),
    AstRule(
        id="cp-clean-cyclomatic-complexity",
        title="High cyclomatic complexity",
        description="The function has many independent paths and is hard to test.",
        suggestion="Split the function or replace branching with lookup tables.",
        severity="medium",
        category="quality",
        languages=JS_TS + PY,
    ),
    AstRule(
        id="cp-clean-function-too-long",
        title="Function too long",
        description="Long functions tend to mix several responsibilities.",
        suggestion="Extract cohesive steps into helpers.",
        severity="low",
        category="quality",
        languages=JS_TS + PY,
    ),
    AstRule(
        id="cp-qual-prefer-const",
        title="let binding never reassigned",
        description="A let declaration is never reassigned.",
        suggestion="Declare it with const.",
        severity="low",
        category="quality",
        languages=JS_TS,
    ),
    AstRule(
        id="cp-qual-unsafe-type-assertion",
        title="Unsafe cast to any",
        description="Asserting a value to any disables type checking downstream.",
        suggestion="Assert to unknown and narrow, or to the concrete type.",
        severity="medium",
        category="quality",
        languages=TS_ONLY,
    ),
)


def analyze_file(path: str, content: str) -> list[AstIssue]:
    """Parse once and return every structural issue for the file."""
    extension = extension_of(path)
    if extension in PY:
        return analyze_python(path, content)
    if extension in JS_TS:
        return analyze_js(path, content)
    return []


def issues_to_findings(
    rule: AstRule,
    path: str,
    lines: Sequence[str],
    issues: Sequence[AstIssue],
    ranges: Sequence[LineRange] | None = None,
) -> list[Finding]:
    if not applies_to(path, rule.languages):
        return []
    findings: list[Finding] = []
    for issue in issues:
        if issue.rule_id != rule.id or not in_ranges(issue.start_line, ranges):
            continue
        index = min(issue.start_line - 1, len(lines) - 1)
        fix_diff = ""
        if issue.replacement is not None and 0 <= index < len(lines):
            fix_diff = build_fix_diff(lines[index], issue.replacement)
        findings.append(
            Finding(
                severity=rule.severity,
                category=rule.category,
                title=rule.title,
                description=f"{rule.description} {issue.message}",
                file_path=path,
                start_line=issue.start_line,
                end_line=issue.end_line,
                code_snippet=extract_snippet(lines, max(index, 0)) if lines else "",
                suggestion=rule.suggestion,
                fix_diff=fix_diff,
                rule_id=rule.id,
                confidence="high",
            )
        )
    return findings


def scan_ast(
    path: str,
    content: str,
    ranges: Sequence[LineRange] | None = None,
    rules: Sequence[AstRule] = AST_RULES,
) -> list[Finding]:
    issues = analyze_file(path, content)
    lines = content.split("\n")
    findings: list[Finding] = []
    for rule in rules:
        findings.extend(issues_to_findings(rule, path, lines, issues, ranges))
    return findings
