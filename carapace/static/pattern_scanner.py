"""Run pattern and file-level rules over one file's content."""

from __future__ import annotations

import re
from collections.abc import Sequence

from carapace.findings import Finding
from carapace.static.base import (
    LineRange,
    applies_to,
    build_fix_diff,
    extract_snippet,
    in_ranges,
    is_comment_line,
    is_config_file,
    is_docs_file,
    is_import_line,
    is_test_file,
)
from carapace.static.pattern_rules import (
    COMMENT_RULES,
    IMPORT_SENSITIVE_RULES,
    SECRET_CONTEXT_RULES,
    FileRule,
    PatternRule,
)

SECRET_CONTEXT_SKIP_RE = re.compile(
    r"(?i)(?:mock|stub|fixture|fake|dummy|example|placeholder|\[REDACTED\]|mask\(|redact\(|"
    r"schema|type:|default|process\.env|os\.environ|getenv)"
)


def should_skip_file(path: str) -> bool:
    return is_docs_file(path)


def scan_pattern_rule(
    rule: PatternRule,
    path: str,
    lines: Sequence[str],
    ranges: Sequence[LineRange] | None = None,
) -> list[Finding]:
    """Apply one line rule, returning at most one finding per line."""
    if should_skip_file(path) or not applies_to(path, rule.languages):
        return []
    if rule.category == "security" and is_config_file(path):
        return []

    test_file = is_test_file(path)
    findings: list[Finding] = []
    for index, line in enumerate(lines):
        line_number = index + 1
        if not in_ranges(line_number, ranges):
            continue
        match = rule.pattern.search(line)
        if match is None:
            continue
        if rule.id not in COMMENT_RULES and is_comment_line(line):
            continue
        if rule.id in IMPORT_SENSITIVE_RULES and is_import_line(line):
            continue
        if rule.id in SECRET_CONTEXT_RULES and SECRET_CONTEXT_SKIP_RE.search(line):
            continue
        if rule.skip is not None and rule.skip(line, match):
            continue

        fix_diff = ""
        if rule.fix is not None:
            fix_diff = build_fix_diff(line, rule.fix(line))

        findings.append(
            Finding(
                severity="info" if test_file else rule.severity,
                category=rule.category,
                title=rule.title,
                description=rule.description,
                file_path=path,
                start_line=line_number,
                end_line=line_number,
                code_snippet=extract_snippet(lines, index),
                suggestion=rule.suggestion,
                fix_diff=fix_diff,
                rule_id=rule.id,
                confidence=rule.confidence,
            )
        )
    return findings


def scan_file_rule(
    rule: FileRule,
    path: str,
    lines: Sequence[str],
    ranges: Sequence[LineRange] | None = None,
) -> list[Finding]:
    if should_skip_file(path) or not applies_to(path, rule.languages):
        return []

    test_file = is_test_file(path)
    findings: list[Finding] = []
    for hit in rule.check(lines):
        if not in_ranges(hit.start_line, ranges):
            continue
        index = max(0, min(hit.start_line - 1, len(lines) - 1))
        findings.append(
            Finding(
                severity="info" if test_file else rule.severity,
                category=rule.category,
                title=rule.title,
                description=f"{rule.description} {hit.message}",
                file_path=path,
                start_line=hit.start_line,
                end_line=hit.end_line,
                code_snippet=extract_snippet(lines, index) if lines else "",
                suggestion=rule.suggestion,
                rule_id=rule.id,
                confidence=rule.confidence,
            )
        )
    return findings
