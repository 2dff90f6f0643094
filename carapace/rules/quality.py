"""Maintainability rules."""

from carapace.findings import Severity
from carapace.rules.base import Rule


def _qual(
    rule_id: str,
    name: str,
    description: str,
    severity: Severity,
    chain: str | None = None,
) -> Rule:
    return Rule(
        id=rule_id,
        name=name,
        description=description,
        category="quality",
        severity=severity,
        ruleset="quality",
        chain=chain,
    )


QUALITY_RULES: tuple[Rule, ...] = (
    _qual(
        "qual-cyclomatic-complexity",
        "Cyclomatic Complexity",
        "Functions with many independent branches that are hard to test.",
        "medium",
    ),
    _qual(
        "qual-function-length",
        "Function Length",
        "Functions longer than roughly fifty lines that mix responsibilities.",
        "low",
    ),
    _qual(
        "qual-nesting-depth",
        "Nesting Depth",
        "Deeply nested conditionals and loops that hide control flow.",
        "low",
    ),
    _qual(
        "qual-naming-convention",
        "Naming Convention",
        "Identifiers that break the surrounding naming style or are misleading.",
        "info",
    ),
    _qual(
        "qual-magic-numbers",
        "Magic Numbers",
        "Unexplained numeric literals that should be named constants.",
        "info",
    ),
    _qual(
        "qual-unused-imports",
        "Unused Imports",
        "Imports that are never referenced.",
        "info",
    ),
    _qual(
        "qual-empty-catch",
        "Empty Catch",
        "Exception handlers that silently discard errors.",
        "medium",
    ),
    _qual(
        "qual-storage-vs-memory",
        "Storage vs Memory",
        "Storage pointers used where a memory copy is intended, or the reverse.",
        "medium",
        chain="solidity",
    ),
)
