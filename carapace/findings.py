"""Finding model and the wire schema exchanged with AI providers and callers."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["critical", "high", "medium", "low", "info"]
Confidence = Literal["high", "medium", "low"]

SEVERITIES: tuple[Severity, ...] = ("critical", "high", "medium", "low", "info")

SEVERITY_RANK: dict[str, int] = {
    "critical": 0,
    "high": 1,
    "medium": 2,
    "low": 3,
    "info": 4,
}

UNKNOWN_SEVERITY_RANK = 99


def severity_rank(severity: str) -> int:
    return SEVERITY_RANK.get(severity, UNKNOWN_SEVERITY_RANK)


class Finding(BaseModel):
    """One reported defect instance.

    Attribute names are snake_case; the camelCase wire names are accepted on
    input and produced by :meth:`to_wire`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    severity: Severity
    category: str
    title: str
    description: str
    file_path: str = Field(alias="filePath")
    start_line: int = Field(alias="startLine", ge=0)
    end_line: int = Field(alias="endLine", ge=0)
    code_snippet: str = Field(default="", alias="codeSnippet")
    suggestion: str = ""
    fix_diff: str = Field(default="", alias="fixDiff")
    rule_id: str = Field(alias="ruleId")
    confidence: Confidence = "high"
    cwe_ids: list[str] | None = Field(default=None, alias="cweIds")
    owasp_category: str | None = Field(default=None, alias="owaspCategory")

    @property
    def dedup_key(self) -> tuple[str, int, str]:
        return (self.file_path, self.start_line, self.rule_id)

    @property
    def rank(self) -> int:
        return severity_rank(self.severity)

    def to_wire(self) -> dict[str, Any]:
        """Dump in the camelCase wire shape, omitting unset CWE/OWASP data."""
        return self.model_dump(by_alias=True, exclude_none=True)


class AIReviewResponse(BaseModel):
    """Strict shape expected from an AI completion."""

    findings: list[Finding]
    summary: str = ""

