"""Merge findings from independent sources into one deduplicated, sorted list."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from carapace.cwe_mapping import get_cwe_owasp
from carapace.findings import Finding
from carapace.log import get_logger


@dataclass(slots=True)
class FindingSource:
    """Findings contributed by one producer (scanner, external tool, AI)."""

    name: str
    findings: list[Finding] = field(default_factory=list)
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def dedupe_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Collapse findings sharing ``(file_path, start_line, rule_id)``.

    The most severe instance wins; on equal severity the first one seen stays.
    """
    best: dict[tuple[str, int, str], Finding] = {}
    for finding in findings:
        existing = best.get(finding.dedup_key)
        if existing is None or finding.rank < existing.rank:
            best[finding.dedup_key] = finding
    return list(best.values())


def sort_findings(findings: Iterable[Finding]) -> list[Finding]:
    return sorted(findings, key=lambda item: (item.rank, item.file_path, item.start_line))


def enrich_findings(findings: Iterable[Finding]) -> list[Finding]:
    """Attach CWE ids and OWASP category looked up by rule id."""
    enriched: list[Finding] = []
    for finding in findings:
        entry = get_cwe_owasp(finding.rule_id)
        enriched.append(
            finding.model_copy(
                update={
                    "cwe_ids": list(entry.cwe_ids) if entry.cwe_ids else None,
                    "owasp_category": entry.owasp_category,
                }
            )
        )
    return enriched


def merge_sources(
    sources: Iterable[FindingSource],
    *,
    logger: logging.Logger | None = None,
) -> list[Finding]:
    """Combine every healthy source, then dedupe, sort and enrich.

    A failed source contributes nothing and is logged; it never aborts the merge.
    """
    log = logger or get_logger("merge")
    collected: list[Finding] = []
    for source in sources:
        if source.failed:
            log.warning("source %s failed, skipping its findings: %s", source.name, source.error)
            continue
        collected.extend(source.findings)
    return enrich_findings(sort_findings(dedupe_findings(collected)))
