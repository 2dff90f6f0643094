"""Chain-agnostic review rules."""

from carapace.rules.base import Rule

GENERAL_RULES: tuple[Rule, ...] = (
    Rule(
        id="gen-code-quality",
        name="Code Quality",
        description=(
            "Identify code smells, overly complex functions, dead code, duplicated logic, "
            "and violations of common coding conventions."
        ),
        category="quality",
        severity="low",
        ruleset="general",
    ),
    Rule(
        id="gen-potential-bugs",
        name="Potential Bugs",
        description=(
            "Detect likely bugs such as off-by-one errors, null dereferences, incorrect "
            "comparisons, unreachable code, and race conditions."
        ),
        category="bugs",
        severity="high",
        ruleset="general",
    ),
    Rule(
        id="gen-performance",
        name="Performance",
        description=(
            "Flag performance anti-patterns including unnecessary allocations, N+1 queries, "
            "missing memoization, and inefficient algorithms."
        ),
        category="performance",
        severity="medium",
        ruleset="general",
    ),
    Rule(
        id="gen-security",
        name="Security",
        description=(
            "Check for injection attacks, insecure deserialization, hardcoded secrets, "
            "and missing input validation."
        ),
        category="security",
        severity="high",
        ruleset="general",
    ),
    Rule(
        id="gen-error-handling",
        name="Error Handling",
        description=(
            "Find swallowed exceptions, missing error propagation, unchecked return values, "
            "and unhandled promise rejections."
        ),
        category="quality",
        severity="medium",
        ruleset="general",
    ),
    Rule(
        id="gen-type-safety",
        name="Type Safety",
        description="Flag unsafe casts, implicit any, and type confusion between values.",
        category="quality",
        severity="medium",
        ruleset="general",
    ),
)
