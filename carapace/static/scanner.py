"""Uniform scanner over pattern, file-level and syntax-tree rules."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from carapace.findings import Finding
from carapace.log import get_logger
from carapace.static.ast_scanner import AST_RULES, AstRule, analyze_file, issues_to_findings
from carapace.static.base import AstIssue, LineRange, applies_to
from carapace.static.pattern_rules import FILE_RULES, PATTERN_RULES, FileRule, PatternRule
from carapace.static.pattern_scanner import scan_file_rule, scan_pattern_rule

ScannerRule = PatternRule | FileRule | AstRule

DEFAULT_RULES: tuple[ScannerRule, ...] = (*PATTERN_RULES, *FILE_RULES, *AST_RULES)


class Scanner:
    """Scan one file at a time with a fixed rule set.

    Deterministic for identical ``(path, content, ranges)``. A rule that
    raises is logged and skipped so the other rules still report.
    """

    def __init__(
        self,
        rules: Iterable[ScannerRule] = DEFAULT_RULES,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.rules: tuple[ScannerRule, ...] = tuple(rules)
        self.logger = logger or get_logger("scanner")

    @property
    def rule_ids(self) -> list[str]:
        return [rule.id for rule in self.rules]

    def scan(
        self,
        path: str,
        content: str,
        ranges: Sequence[LineRange] | None = None,
    ) -> list[Finding]:
        lines = content.split("\n")
        ast_issues = self._ast_issues(path, content)
        findings: list[Finding] = []
        for rule in self.rules:
            try:
                if isinstance(rule, PatternRule):
                    findings.extend(scan_pattern_rule(rule, path, lines, ranges))
                elif isinstance(rule, FileRule):
                    findings.extend(scan_file_rule(rule, path, lines, ranges))
                else:
                    findings.extend(issues_to_findings(rule, path, lines, ast_issues, ranges))
            except Exception as exc:
                self.logger.warning("rule %s failed on %s: %s", rule.id, path, exc)
        return findings

    def _ast_issues(self, path: str, content: str) -> list[AstIssue]:
        wanted = any(
            isinstance(rule, AstRule) and applies_to(path, rule.languages) for rule in self.rules
        )
        if not wanted:
            return []
        try:
            return analyze_file(path, content)
        except Exception as exc:
            self.logger.warning("syntax tree analysis failed on %s: %s", path, exc)
            return []


def default_scanner(
    disabled: Iterable[str] = (),
    *,
    logger: logging.Logger | None = None,
) -> Scanner:
    """Scanner with every built-in rule except the disabled ids."""
    skipped = set(disabled)
    return Scanner((rule for rule in DEFAULT_RULES if rule.id not in skipped), logger=logger)


def scan_file(
    path: str,
    content: str,
    ranges: Sequence[LineRange] | None = None,
) -> list[Finding]:
    return default_scanner().scan(path, content, ranges)
