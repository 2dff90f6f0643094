"""System prompt assembly for AI review."""

from __future__ import annotations

from collections.abc import Sequence

from carapace.classifier import FileClassification

OUTPUT_FORMAT = """\
## Output Format

Respond with a single JSON object:
```json
{
  "findings": [
    {
      "severity": "critical" | "high" | "medium" | "low" | "info",
      "category": "string",
      "title": "Short title",
      "description": "Detailed explanation",
      "filePath": "path/to/file",
      "startLine": 1,
      "endLine": 1,
      "codeSnippet": "code",
      "suggestion": "How to fix",
      "fixDiff": "-old line\\n+new line",
      "ruleId": "rule-id",
      "confidence": "high" | "medium" | "low"
    }
  ],
  "summary": "Brief summary"
}
```

`fixDiff` holds only the lines to change: each removed line prefixed with
`-` and each added line with `+`, starting at `startLine`. Leave it empty
when no mechanical fix applies."""


def build_system_prompt(
    classifications: Sequence[FileClassification],
    rule_descriptions: Sequence[str],
    static_context: str = "",
) -> str:
    """Compose the reviewer instructions for one diff review run."""
    return _compose(
        "You are a senior security-focused code reviewer. Analyze the code diff "
        "and report security vulnerabilities, bugs and quality problems.",
        "Only report genuine issues on changed lines.",
        classifications,
        rule_descriptions,
        static_context,
    )


def build_full_file_prompt(
    classifications: Sequence[FileClassification],
    rule_descriptions: Sequence[str],
    static_context: str = "",
) -> str:
    """Instructions for reviewing complete source files rather than a diff."""
    return _compose(
        "You are a senior security-focused code reviewer. Analyze the complete "
        "source files you are given and report security vulnerabilities, bugs "
        "and quality problems.",
        "Only report genuine issues, with line numbers counted from the start of each file.",
        classifications,
        rule_descriptions,
        static_context,
    )


def _compose(
    intro: str,
    scope: str,
    classifications: Sequence[FileClassification],
    rule_descriptions: Sequence[str],
    static_context: str,
) -> str:
    languages = sorted({item.language for item in classifications if item.language != "unknown"})
    chains = sorted({item.chain for item in classifications if item.chain})
    has_contracts = any(item.is_smart_contract for item in classifications)

    sections = [intro]
    if languages:
        sections.append(f"Languages in this change: {', '.join(languages)}.")
    if chains:
        sections.append(f"Blockchain targets: {', '.join(chains)}.")
    if has_contracts:
        sections.append(
            "Smart contracts are included. Pay particular attention to reentrancy, "
            "access control, arithmetic and oracle manipulation."
        )
    if static_context:
        sections.append(static_context.strip())

    rules = "\n".join(f"{index}. {line}" for index, line in enumerate(rule_descriptions, start=1))
    sections.append(f"## Active Rules\n\n{rules}" if rules else "## Active Rules\n\n(none)")
    sections.append(OUTPUT_FORMAT)
    sections.append(f"{scope} Use the ruleId of the matching active rule. Respond only with JSON.")
    return "\n\n".join(sections)
